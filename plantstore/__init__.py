"""
Plant Registry - record management for plants and their images.

This package contains the complete application:
- core: Framework-agnostic domain models
- repositories: Pagination, attachment storage and record assembly
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"

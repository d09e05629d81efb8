"""
Core domain layer.

Contains the plant domain models. No dependencies on FastAPI,
Snowflake, or object storage.
"""

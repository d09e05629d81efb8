"""
Plant domain models.

A plant is a set of free-form fields plus the names of the images
stored alongside it.
"""

from .models import Attachment, Page, Plant

__all__ = ["Attachment", "Page", "Plant"]

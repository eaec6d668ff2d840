"""Core module for the courtside application."""

from .types import ApplicationDocument, EventDocument

__all__ = ["ApplicationDocument", "EventDocument"]

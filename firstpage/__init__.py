"""Locate a book's first page of real content in its online preview and extract the text."""

from firstpage.config import Settings
from firstpage.errors import ConfigurationError, ModelRequestError, NavigationError
from firstpage.models import BookIdentity, ExtractionResult, IdentityGuess, SourceLabel
from firstpage.service import BookPageService

__all__ = [
    "BookIdentity",
    "BookPageService",
    "ConfigurationError",
    "ExtractionResult",
    "IdentityGuess",
    "ModelRequestError",
    "NavigationError",
    "Settings",
    "SourceLabel",
]

__version__ = "0.1.0"

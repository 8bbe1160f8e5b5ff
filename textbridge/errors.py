"""Error definitions for the text bridge."""


class TextBridgeError(Exception):
    """Base exception for all custom errors."""


class InvalidSourceError(TextBridgeError, ValueError):
    """Raised when a source artifact cannot be decoded or parsed."""


class UnsupportedFormatError(TextBridgeError):
    """Raised when reinsertion is requested for a format with no extractor."""


class DocumentNotFoundError(TextBridgeError, KeyError):
    """Raised when a document id is not (or no longer) in the store."""

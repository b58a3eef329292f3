"""Error definitions for the Babelmark translator."""

from __future__ import annotations


class BabelmarkError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(BabelmarkError):
    """Raised when runtime settings or the project file are invalid."""


class MissingCredentialError(ConfigurationError):
    """Raised when a remote provider is needed but no credential is configured."""


class UnsupportedFileTypeError(BabelmarkError):
    """Raised when a given file extension is not supported."""


class DocumentParseError(BabelmarkError):
    """Raised when a source document cannot be parsed."""


class UnmatchedRegionError(BabelmarkError):
    """Raised when ignore-region markers do not pair up."""


class ReplacementMismatchError(BabelmarkError):
    """Raised when replacement visits a different number of leaves than translations."""


class OverwriteRefusedError(BabelmarkError):
    """Raised when an output path would overwrite its own source."""


class TranslationProviderError(BabelmarkError):
    """Raised when the translation provider fails permanently."""

"""
Terminal errors raised by the preprocessing pipeline.

Only problems with the input itself surface to the caller. Stage failures,
analysis failures and cleanup failures are absorbed and logged.
"""


class PreprocessingError(Exception):
    """Base class for errors that abort a preprocessing run."""

    pass


class InvalidImageError(PreprocessingError):
    """Raised when the source image is missing, empty or cannot be decoded."""

    pass


class FormatConversionError(PreprocessingError):
    """Raised when an unsupported format could not be converted."""

    pass

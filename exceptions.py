"""
Custom exceptions for the document processing pipeline.

Extraction collaborators raise these typed errors; the batch queue converts
them into item state and never lets them reach the caller.
"""


class ProcessingError(Exception):
    """Base exception for all document processing errors"""
    pass


class ExtractionError(ProcessingError):
    """Extraction failed for a reason the user has to look at"""
    pass


class PasswordRequiredError(ExtractionError):
    """The document is encrypted and needs a password before extraction"""

    def __init__(self, message: str = "PASSWORD_REQUIRED"):
        super().__init__(message)


class QuotaExceededError(ExtractionError):
    """The extraction provider asked us to slow down (quota or HTTP 429)"""
    pass


class IncorrectPasswordError(ProcessingError):
    """Unlocking a PDF failed with the given password"""
    pass


class PdfProcessingError(ProcessingError):
    """Splitting, cutting or rendering a PDF failed"""
    pass

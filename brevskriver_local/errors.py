"""
Error taxonomy for the letter drafting pipeline
"""

from typing import Dict, Optional


class LetterDraftingError(Exception):
    """Base class for errors raised by the drafting pipeline."""

    user_message = "Brevet kunne ikke genereres."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class FieldValidationError(LetterDraftingError):
    """One or more form fields failed validation."""

    user_message = "Udfyld de markerede felter."

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"{self.user_message} ({', '.join(self.errors)})")


class CapabilityUnavailable(LetterDraftingError):
    """The machine lacks the hardware acceleration the local model needs."""

    user_message = (
        "Hardware acceleration is not available on this device. "
        "Use the test letter or run on a machine with a supported GPU."
    )


class ModelNotReady(LetterDraftingError):
    """Generation requested before the local model finished loading."""

    user_message = "The local model is still loading. Try again when it is ready."


class ModelInvocationFailure(LetterDraftingError):
    """The model call itself failed."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause) or cause.__class__.__name__)


class GenerationInProgress(LetterDraftingError):
    """A generation request is already waiting on the model."""

    user_message = "A letter is already being generated."


class PersistenceFailure(LetterDraftingError):
    """Reading or writing local storage failed."""


class ExportError(LetterDraftingError):
    """Exporting or copying the letter failed."""

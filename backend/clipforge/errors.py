"""Error taxonomy for the clip pipeline.

Every error carries a ``public_message`` that is safe to return to callers;
the exception's own message may hold internal diagnostics and is only logged.
"""
from typing import Optional


class ClipForgeError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    retriable = True
    default_message = "Processing failed"

    def __init__(self, message: Optional[str] = None, public_message: Optional[str] = None):
        super().__init__(message or public_message or self.default_message)
        self.public_message = public_message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.public_message}


class ValidationError(ClipForgeError):
    """Bad upload or unreadable/unsupported video."""

    status_code = 400
    retriable = False
    default_message = "Invalid video file"


class AuthenticationError(ClipForgeError):
    """No authenticated user on the request."""

    status_code = 401
    retriable = False
    default_message = "Unauthorized"


class AuthorizationError(ClipForgeError):
    """Requester does not own the resource."""

    status_code = 403
    retriable = False
    default_message = "You do not have access to this video"


class VideoNotFoundError(ClipForgeError):
    """Video id is unknown."""

    status_code = 404
    retriable = False
    default_message = "Video not found"


class ClipNotFoundError(ClipForgeError):
    status_code = 404
    retriable = False
    default_message = "Clip not found"


class ClipExpiredError(ClipForgeError):
    """Clip passed its expiry and its object may already be purged."""

    status_code = 410
    retriable = False
    default_message = "Clip has expired"


class ConflictError(ClipForgeError):
    """Video is already processing or already completed."""

    status_code = 409
    retriable = False
    default_message = "Video is already being processed"


class InsufficientCreditsError(ClipForgeError):
    """Balance does not cover the required credits."""

    status_code = 402
    default_message = "Insufficient credits"

    def __init__(self, required: int, balance: int, redirect_url: str = "/credits"):
        super().__init__(
            f"Insufficient credits: required {required}, balance {balance}",
            public_message=f"Insufficient credits. Required: {required}, balance: {balance}",
        )
        self.required = required
        self.balance = balance
        self.redirect_url = redirect_url

    def to_dict(self) -> dict:
        return {
            "error": self.public_message,
            "required": self.required,
            "balance": self.balance,
            "redirect_url": self.redirect_url,
        }


class JobTimeoutError(ClipForgeError):
    """Wall-clock budget exceeded at a checkpoint."""

    status_code = 504
    default_message = "Processing timed out. The video may be too long."


class ClipGenerationError(ClipForgeError):
    """A single scene could not be turned into a clip."""

    default_message = "Clip generation failed"


class ProcessingError(ClipForgeError):
    """Sanitized wrapper for unexpected failures."""

    status_code = 500
    default_message = "Processing failed"

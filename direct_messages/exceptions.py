"""
Error kinds raised by the messaging core.

Read paths catch store errors and degrade to an empty result carrying an
``ErrorInfo``; write paths raise them to the caller.
"""

from typing import Any, Dict


class MessagingError(Exception):

    code = "messaging_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationFailed(MessagingError):
    """Request refused locally, before any store call."""

    code = "validation_failed"
    status_code = 400


class StoreUnavailable(MessagingError):
    """The store could not be reached or the query did not complete."""

    code = "store_unavailable"
    status_code = 503


class PartialWriteFailure(MessagingError):
    """The store rejected an insert or a read-flag update."""

    code = "write_failed"
    status_code = 502

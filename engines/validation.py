"""Error taxonomy shared by the scoring engines and the service layer."""

from typing import Optional


class EngineError(Exception):
    """Base class for errors surfaced to callers of the engines."""

    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    def to_detail(self) -> dict:
        return {"code": self.code, "message": str(self)}


class InvalidInputError(EngineError):
    """Raised when a request cannot be scored as submitted."""

    code = "INVALID_INPUT"
    status_code = 400


class InvalidMethodError(InvalidInputError):
    """Raised for an unrecognised scoring method name."""

    code = "INVALID_METHOD"


class NotFoundError(EngineError):
    """Raised when a referenced child, assessment or record is absent."""

    code = "NOT_FOUND"
    status_code = 404


class UnauthorizedError(EngineError):
    """Raised when a parent does not own the referenced child."""

    code = "UNAUTHORIZED_ACCESS"
    status_code = 403

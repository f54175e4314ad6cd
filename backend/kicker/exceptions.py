from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class NotInitialized(DomainException):
    def __init__(self, detail: str = "no tournament is running") -> None:
        super().__init__(
            status_code=404,
            title="Tournament not running",
            detail=detail,
            code="tournament_not_running",
        )


class InvalidState(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=409,
            title="Invalid tournament state",
            detail=detail,
            code="tournament_invalid_state",
        )


class InvalidArgument(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid argument",
            detail=detail,
            code="invalid_argument",
        )


class InvalidConfig(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=422,
            title="Invalid configuration",
            detail=detail,
            code="invalid_config",
        )


class Busy(DomainException):
    """Raised when a mutation arrives while another one is still in flight."""

    def __init__(self, detail: str = "another update is in progress") -> None:
        super().__init__(
            status_code=409,
            title="Update in progress",
            detail=detail,
            code="busy",
        )


class PersistenceError(DomainException):
    def __init__(self, detail: str = "tournament state could not be stored") -> None:
        super().__init__(
            status_code=503,
            title="Storage unavailable",
            detail=detail,
            code="persistence_error",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

_DEFAULT_DETAILS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


class DependencyInjectionException(Exception):
    """Base exception for this library"""

    pass


class WiringError(DependencyInjectionException):
    """Raised when a route's declarations or handler signature cannot be wired"""


class DependencyCycleError(DependencyInjectionException):
    """Raised when container registrations depend on each other in a cycle"""


class ContainerFrozenError(DependencyInjectionException):
    """Raised when register() is called after the container was frozen"""


class ResolutionError(DependencyInjectionException):
    """Raised when a dependency could not be resolved for the current request.

    The original exception, if any, is chained as `__cause__`.
    """

    def __init__(self, msg: str, dependency: Any = None) -> None:
        super().__init__(msg)
        self.dependency = dependency


class UnknownDependencyError(ResolutionError):
    """Raised when a container lookup finds no registration for a name"""

    def __init__(self, name: str) -> None:
        super().__init__(f"No dependency registered under the name {name!r}", name)
        self.name = name


class MissingDependencyError(ResolutionError):
    """Raised when a required parameter matches neither a sub-dependency nor a context value"""

    def __init__(self, name: str, dependency: Any) -> None:
        super().__init__(
            f"Missing value for required parameter {name!r} of {dependency!r}",
            dependency,
        )
        self.name = name


class CleanupError(DependencyInjectionException):
    """A cleanup action raised. Always contained, only ever logged"""

    def __init__(self, msg: str, cleanup: Any) -> None:
        super().__init__(msg)
        self.cleanup = cleanup


class BackgroundTaskError(DependencyInjectionException):
    """A background task raised. Always contained, only ever logged"""

    def __init__(self, msg: str, task: Any) -> None:
        super().__init__(msg)
        self.task = task


class HTTPException(StarletteHTTPException):
    """An error that is rendered to the client as `{"detail": ...}` JSON"""

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if detail is None:
            detail = _DEFAULT_DETAILS.get(status_code, "Error")
        super().__init__(status_code=status_code, headers=dict(headers or {}))
        # starlette coerces detail to a string, we keep structured details
        self.detail = detail

    def __str__(self) -> str:
        return str(self.detail)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            {"detail": self.detail},
            status_code=self.status_code,
            headers=self.headers,
        )


class InputShapeError(HTTPException):
    """The request input failed validation before any dependency was resolved"""

    def __init__(
        self,
        errors: List[Dict[str, Any]],
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(status_code=422, detail=errors, headers=headers)
        self.errors = errors


class OutputShapeError(HTTPException):
    """The handler's return value does not match its declared response schema"""

    def __init__(self, errors: List[Dict[str, Any]]) -> None:
        super().__init__(
            status_code=500, detail=f"Response validation failed: {errors}"
        )
        self.errors = errors

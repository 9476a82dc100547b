from reqdi.container._container import Container, Registration
from reqdi.container._resolution import resolve, resolve_all
from reqdi.container._state import (
    Cleanup,
    CleanupRegistry,
    RequestState,
    Resolved,
    compose_cleanups,
)

__all__ = (
    "Cleanup",
    "CleanupRegistry",
    "Container",
    "Registration",
    "RequestState",
    "Resolved",
    "compose_cleanups",
    "resolve",
    "resolve_all",
)

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("reqdi")
except PackageNotFoundError:
    __version__ = "0.0.0"


import reqdi.api as api  # noqa: E402
from reqdi.applications import App  # noqa: E402
from reqdi.background import BackgroundTasks  # noqa: E402
from reqdi.config import Settings  # noqa: E402
from reqdi.container import Container, RequestState, resolve, resolve_all  # noqa: E402
from reqdi.context import ResolutionContext  # noqa: E402
from reqdi.depends import ContainerRef, Depends  # noqa: E402
from reqdi.exceptions import HTTPException  # noqa: E402
from reqdi.lifecycle import Endpoint  # noqa: E402
from reqdi.routing import Route  # noqa: E402
from reqdi.schema import RequestInput  # noqa: E402

__all__ = (
    "api",
    "App",
    "BackgroundTasks",
    "Container",
    "ContainerRef",
    "Depends",
    "Endpoint",
    "HTTPException",
    "RequestInput",
    "RequestState",
    "ResolutionContext",
    "Route",
    "Settings",
    "resolve",
    "resolve_all",
)

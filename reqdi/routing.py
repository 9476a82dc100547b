import typing

from starlette.routing import Route as StarletteRoute

from reqdi.config import Settings
from reqdi.container import Container
from reqdi.lifecycle import Endpoint


class Route(StarletteRoute):
    """A route whose endpoint runs through dependency resolution and cleanup"""

    endpoint_runner: Endpoint

    def __init__(
        self,
        path: str,
        endpoint: typing.Callable[..., typing.Any],
        *,
        container: Container,
        methods: typing.Optional[typing.List[str]] = None,
        depends: typing.Any = None,
        query: typing.Any = None,
        body: typing.Any = None,
        response_schema: typing.Any = None,
        status_code: typing.Optional[int] = None,
        settings: typing.Optional[Settings] = None,
        name: typing.Optional[str] = None,
        include_in_schema: bool = True,
    ) -> None:
        self.endpoint_runner = Endpoint(
            endpoint,
            depends,
            container=container,
            query=query,
            body=body,
            response_schema=response_schema,
            status_code=status_code,
            settings=settings,
        )
        # a bound method, so starlette wraps it as a request -> response function
        super().__init__(
            path,
            self.endpoint_runner.handle,
            methods=methods,
            name=name or getattr(endpoint, "__name__", None),
            include_in_schema=include_in_schema,
        )

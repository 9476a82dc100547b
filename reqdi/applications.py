import logging
import typing
from contextlib import asynccontextmanager

from starlette.applications import Starlette

from reqdi._utils.concurrency import call_maybe_async
from reqdi.api.providers import DependencyProvider
from reqdi.config import Settings
from reqdi.container import Container
from reqdi.routing import Route

logger = logging.getLogger(__name__)

Hook = typing.Callable[[], typing.Any]
HandlerT = typing.TypeVar("HandlerT", bound=typing.Callable[..., typing.Any])
ProviderT = typing.TypeVar("ProviderT", bound=DependencyProvider)


class App(Starlette):
    """A Starlette application whose routes get request scoped dependencies.

    ```py
    app = App()

    @app.register("db")
    async def get_db():
        db = await connect()
        try:
            yield db
        finally:
            await db.close()

    @app.get("/users/{id}", depends=["db"])
    async def get_user(input, db):
        return await db.fetch_user(input.path["id"])
    ```

    The container is frozen when the application starts (or on the first
    request, whichever happens first); register everything before that.
    """

    container: Container
    settings: Settings

    def __init__(
        self,
        container: typing.Optional[Container] = None,
        settings: typing.Optional[Settings] = None,
        **kwargs: typing.Any,
    ) -> None:
        self.container = container or Container()
        self.settings = settings or Settings()
        self._startup_hooks: typing.List[Hook] = []
        self._shutdown_hooks: typing.List[Hook] = []
        logging.getLogger("reqdi").setLevel(self.settings.log_level.upper())
        user_lifespan = kwargs.pop("lifespan", None)

        @asynccontextmanager
        async def lifespan(app: "App") -> typing.AsyncIterator[None]:
            self.container.freeze()
            await self.run_startup_hooks()
            try:
                if user_lifespan is None:
                    yield None
                else:
                    async with user_lifespan(app):
                        yield None
            finally:
                await self.run_shutdown_hooks()

        kwargs.setdefault("debug", self.settings.debug)
        super().__init__(**kwargs, lifespan=lifespan)

    @typing.overload
    def register(self, name: str) -> typing.Callable[[ProviderT], ProviderT]:
        ...

    @typing.overload
    def register(self, name: str, factory: ProviderT) -> ProviderT:
        ...

    def register(self, name: str, factory: typing.Optional[DependencyProvider] = None) -> typing.Any:
        """Register a dependency factory under `name`, directly or as a decorator"""
        if factory is None:

            def decorator(func: ProviderT) -> ProviderT:
                self.container.register(name, func)
                return func

            return decorator
        self.container.register(name, factory)
        return factory

    def route(  # type: ignore[override]
        self,
        path: str,
        methods: typing.Optional[typing.List[str]] = None,
        *,
        depends: typing.Any = None,
        query: typing.Any = None,
        body: typing.Any = None,
        response_schema: typing.Any = None,
        status_code: typing.Optional[int] = None,
        name: typing.Optional[str] = None,
        include_in_schema: bool = True,
    ) -> typing.Callable[[HandlerT], HandlerT]:
        def decorator(func: HandlerT) -> HandlerT:
            route = Route(
                path,
                func,
                container=self.container,
                methods=methods,
                depends=depends,
                query=query,
                body=body,
                response_schema=response_schema,
                status_code=status_code,
                settings=self.settings,
                name=name,
                include_in_schema=include_in_schema,
            )
            self.router.routes.append(route)
            return func

        return decorator

    def get(self, path: str, **kwargs: typing.Any) -> typing.Callable[[HandlerT], HandlerT]:
        return self.route(path, methods=["GET"], **kwargs)

    def post(self, path: str, **kwargs: typing.Any) -> typing.Callable[[HandlerT], HandlerT]:
        return self.route(path, methods=["POST"], **kwargs)

    def put(self, path: str, **kwargs: typing.Any) -> typing.Callable[[HandlerT], HandlerT]:
        return self.route(path, methods=["PUT"], **kwargs)

    def patch(self, path: str, **kwargs: typing.Any) -> typing.Callable[[HandlerT], HandlerT]:
        return self.route(path, methods=["PATCH"], **kwargs)

    def delete(self, path: str, **kwargs: typing.Any) -> typing.Callable[[HandlerT], HandlerT]:
        return self.route(path, methods=["DELETE"], **kwargs)

    def on_startup(self, func: Hook) -> Hook:
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Hook) -> Hook:
        self._shutdown_hooks.append(func)
        return func

    async def run_startup_hooks(self) -> None:
        """Run startup hooks in order; the first failure aborts startup"""
        for hook in self._startup_hooks:
            try:
                await call_maybe_async(hook)
            except Exception:
                logger.error("Startup hook %r failed", hook, exc_info=True)
                raise

    async def run_shutdown_hooks(self) -> None:
        """Run every shutdown hook in order, logging failures"""
        for hook in self._shutdown_hooks:
            try:
                await call_maybe_async(hook)
            except Exception:
                logger.error("Shutdown hook %r failed", hook, exc_info=True)

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import anyio
from anyio.abc import TaskGroup
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from reqdi._utils.concurrency import call_maybe_async
from reqdi._utils.inspect import accepts_var_keyword, get_parameters, is_required
from reqdi.background import BackgroundTasks
from reqdi.config import Settings
from reqdi.container import Container, RequestState, resolve_all
from reqdi.context import ResolutionContext
from reqdi.depends import normalize_declarations
from reqdi.exceptions import HTTPException, InputShapeError, ResolutionError, WiringError
from reqdi.schema import RequestInput, normalize_schema, parse_input, validate_input, validate_output

logger = logging.getLogger(__name__)

BACKGROUND = "background"

# names a handler can always ask for, besides its declared dependencies
HANDLER_NAMES = (*ResolutionContext.NAMES, BACKGROUND)

# what leading positional handler parameters receive, in order
POSITIONAL_CONTEXT = ("input", "request", "task")

_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class Endpoint:
    """Runs one route's handler with its dependencies, for every request.

    Per request, in order:
    1. parse the request and validate the query and body (a failure is a 422
       and nothing is resolved)
    2. resolve the declared dependencies
    3. call the handler, injecting values by parameter name
    4. validate the returned payload against the response schema, unless the
       handler returned a `Response`
    5. run the background tasks the handler queued
    6. release every resolved dependency, in resolution order, whatever happened above
    """

    __slots__ = (
        "handler",
        "declarations",
        "container",
        "query_schema",
        "body_schema",
        "response_schema",
        "status_code",
        "settings",
        "_parameters",
        "_accepts_kwargs",
        "_positional_context",
    )

    def __init__(
        self,
        handler: Callable[..., Any],
        depends: Any = None,
        *,
        container: Container,
        query: Any = None,
        body: Any = None,
        response_schema: Any = None,
        status_code: Optional[int] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.handler = handler
        self.declarations = normalize_declarations(depends)
        self.container = container
        self.query_schema = normalize_schema(query)
        self.body_schema = normalize_schema(body)
        self.response_schema = normalize_schema(response_schema)
        self.settings = settings or Settings()
        self.status_code = status_code or self.settings.default_status_code
        self._parameters = get_parameters(handler)
        self._accepts_kwargs = accepts_var_keyword(handler)
        self._positional_context = self._leading_context_parameters()
        self._check_wiring()

    def _leading_context_parameters(self) -> Dict[str, str]:
        """Map leading positional parameters to `input`, `request` and `task`, by position.

        `def handler(inp, req, t, db)` receives the input, the request and the
        task group positionally. Parameters named after a request value keep
        their by-name meaning; the first declared dependency ends the leading run.
        """
        aliases: Dict[str, str] = {}
        for index, (name, param) in enumerate(self._parameters.items()):
            if index >= len(POSITIONAL_CONTEXT) or param.kind not in _POSITIONAL_KINDS:
                break
            if name in self.declarations:
                break
            if name in HANDLER_NAMES:
                continue
            aliases[name] = POSITIONAL_CONTEXT[index]
        return aliases

    def _check_wiring(self) -> None:
        for name in self.declarations:
            if name in HANDLER_NAMES:
                raise WiringError(
                    f"{name!r} is reserved for the request context and cannot name a dependency"
                )
            if name not in self._parameters and not self._accepts_kwargs:
                raise WiringError(
                    f"Handler {self.handler!r} declares dependency {name!r}"
                    " but has no parameter to receive it"
                )
        for name, param in self._parameters.items():
            if (
                is_required(param)
                and name not in self.declarations
                and name not in HANDLER_NAMES
                and name not in self._positional_context
            ):
                raise WiringError(
                    f"Required parameter {name!r} of handler {self.handler!r}"
                    " matches no declared dependency or request value"
                )

    async def handle(self, request: Request) -> Response:
        self.container.freeze()
        request_input = await parse_input(request)
        try:
            request_input = validate_input(request_input, self.query_schema, self.body_schema)
        except InputShapeError as e:
            return e.to_response()

        state = RequestState()
        try:
            return await self._run(request, request_input, state)
        except HTTPException as e:
            return e.to_response()
        except StarletteHTTPException as e:
            return JSONResponse({"detail": e.detail}, status_code=e.status_code, headers=e.headers)
        except ResolutionError as e:
            logger.error("Could not resolve dependencies for %s", request.url.path, exc_info=e)
            return JSONResponse({"detail": self._resolution_detail(e)}, status_code=500)
        finally:
            with anyio.CancelScope(shield=True):
                await state.cleanups.drain()

    def _resolution_detail(self, exc: ResolutionError) -> str:
        if self.settings.debug or self.settings.expose_errors:
            cause = exc.__cause__ or exc
            return f"Dependency resolution failed: {cause!r}"
        return "Dependency resolution failed"

    async def _run(self, request: Request, request_input: RequestInput, state: RequestState) -> Response:
        response: Optional[Response] = None
        error: Optional[Exception] = None
        async with anyio.create_task_group() as task:
            try:
                response = await self._process(request, request_input, task, state)
            except Exception as e:
                # re-raised outside the group so it is not wrapped in an exception group
                error = e
        if error is not None:
            raise error
        assert response is not None
        return response

    async def _process(
        self,
        request: Request,
        request_input: RequestInput,
        task: TaskGroup,
        state: RequestState,
    ) -> Response:
        context = ResolutionContext(
            input=request_input,
            request=request,
            task=task,
            container=self.container,
        )
        values = await resolve_all(self.declarations, context, state)

        background = BackgroundTasks()
        available: Dict[str, Any] = {
            "input": request_input,
            "request": request,
            "task": task,
            "container": self.container,
            BACKGROUND: background,
            **values,
        }
        args, kwargs = self._bind_handler(available, values)
        result = await call_maybe_async(self.handler, *args, **kwargs)

        if isinstance(result, Response):
            await background.drain()
            return result

        payload, status_code, headers = self._normalize(result)
        payload = validate_output(payload, self.response_schema)
        await background.drain()
        return JSONResponse(payload, status_code=status_code, headers=headers)

    def _bind_handler(
        self, available: Mapping[str, Any], values: Mapping[str, Any]
    ) -> Tuple[List[Any], Dict[str, Any]]:
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        skipped: List[inspect.Parameter] = []
        for name, param in self._parameters.items():
            source = self._positional_context.get(name, name)
            if source not in available:
                if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                    skipped.append(param)
                continue
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.extend(p.default for p in skipped)
                skipped.clear()
                args.append(available[source])
            else:
                kwargs[name] = available[source]
        if self._accepts_kwargs:
            for name, value in values.items():
                kwargs.setdefault(name, value)
        return args, kwargs

    def _normalize(self, result: Any) -> Tuple[Any, int, Optional[Mapping[str, str]]]:
        if isinstance(result, tuple) and len(result) in (2, 3) and isinstance(result[1], int):
            if len(result) == 2:
                payload, status_code = result
                return payload, status_code, None
            return result
        return result, self.status_code, None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(handler={self.handler!r}, depends={list(self.declarations)})"

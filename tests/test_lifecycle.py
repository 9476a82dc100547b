from typing import Any, AsyncGenerator, Dict, Generator, List, Tuple

import anyio
import pytest
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.testclient import TestClient

from reqdi import (
    App,
    BackgroundTasks,
    Container,
    Depends,
    Endpoint,
    HTTPException,
    RequestInput,
    Settings,
)
from reqdi.exceptions import WiringError


class Item(BaseModel):
    name: str
    price: float


class Query(BaseModel):
    limit: int = 10


def test_identity_dedupe() -> None:
    app = App()
    calls: List[object] = []

    @app.register("db")
    def db() -> object:
        value = object()
        calls.append(value)
        return value

    @app.get("/", depends={"first": "db", "second": "db"})
    def endpoint(first: object, second: object) -> Dict[str, bool]:
        return {"same": first is second}

    client = TestClient(app)
    assert client.get("/").json() == {"same": True}
    assert len(calls) == 1
    client.get("/")
    assert len(calls) == 2


def test_cleanup_runs_when_handler_raises_http_exception() -> None:
    app = App()
    log: List[str] = []

    @app.register("conn")
    def conn() -> Generator[str, None, None]:
        log.append("open")
        yield "conn"
        log.append("close")

    @app.register("managed")
    def managed() -> Tuple[str, Any]:
        return "managed", lambda: log.append("release managed")

    @app.get("/", depends=["conn", "managed"])
    def endpoint(conn: str, managed: str) -> None:
        log.append("handler")
        raise HTTPException(409, detail={"reason": "conflict"}, headers={"x-reason": "conflict"})

    resp = TestClient(app).get("/")
    assert resp.status_code == 409
    assert resp.json() == {"detail": {"reason": "conflict"}}
    assert resp.headers["x-reason"] == "conflict"
    assert log == ["open", "handler", "close", "release managed"]


def test_cleanup_runs_when_handler_crashes() -> None:
    app = App()
    log: List[str] = []

    @app.register("conn")
    async def conn() -> AsyncGenerator[str, None]:
        log.append("open")
        try:
            yield "conn"
        finally:
            log.append("close")

    @app.get("/", depends="conn")
    async def endpoint(conn: str) -> None:
        raise RuntimeError("handler bug")

    with pytest.raises(RuntimeError, match="handler bug"):
        TestClient(app).get("/")
    assert log == ["open", "close"]

    resp = TestClient(app, raise_server_exceptions=False).get("/")
    assert resp.status_code == 500
    assert log == ["open", "close", "open", "close"]


def test_no_resolution_when_input_is_invalid() -> None:
    app = App()
    log: List[str] = []

    @app.register("conn")
    def conn() -> Generator[str, None, None]:
        log.append("open")
        yield "conn"
        log.append("close")

    @app.post("/items", depends="conn", body=Item)
    def create(conn: str, input: RequestInput) -> Dict[str, Any]:
        return input.body.model_dump()

    client = TestClient(app)
    resp = client.post("/items", json={"name": "pen"})
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail[0]["loc"] == ["body", "price"]
    assert detail[0]["type"] == "missing"
    assert log == []

    resp = client.post("/items", json={"name": "pen", "price": "1.5"})
    assert resp.status_code == 200
    assert resp.json() == {"name": "pen", "price": 1.5}
    assert log == ["open", "close"]


def test_query_validation() -> None:
    app = App()

    @app.get("/items", query=Query)
    def items(input: RequestInput) -> Dict[str, int]:
        return {"limit": input.query.limit}

    client = TestClient(app)
    assert client.get("/items").json() == {"limit": 10}
    assert client.get("/items?limit=3").json() == {"limit": 3}
    resp = client.get("/items?limit=many")
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["loc"] == ["query", "limit"]


def test_background_tasks_run_before_cleanup() -> None:
    app = App()
    timeline: List[str] = []

    class Connection:
        open = False

        def execute(self, statement: str) -> None:
            assert self.open, "connection already closed"
            timeline.append(statement)

    @app.register("conn")
    async def conn() -> AsyncGenerator[Connection, None]:
        connection = Connection()
        connection.open = True
        timeline.append("open")
        yield connection
        connection.open = False
        timeline.append("close")

    @app.post("/", depends="conn")
    async def endpoint(conn: Connection, background: BackgroundTasks) -> Dict[str, str]:
        background.add_task(conn.execute, "audit")
        timeline.append("handler")
        return {"status": "queued"}

    resp = TestClient(app).post("/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "queued"}
    assert timeline == ["open", "handler", "audit", "close"]


def test_background_task_errors_are_isolated(caplog: pytest.LogCaptureFixture) -> None:
    app = App()
    log: List[str] = []

    def failing() -> None:
        raise ValueError("task failed")

    @app.get("/")
    def endpoint(background: BackgroundTasks) -> Dict[str, str]:
        background.add_task(failing)
        background.add_task(log.append, "second")
        return {"ok": "yes"}

    resp = TestClient(app).get("/")
    assert resp.status_code == 200
    assert resp.json() == {"ok": "yes"}
    assert log == ["second"]
    assert "Background task" in caplog.text


def test_cleanup_failures_are_isolated(caplog: pytest.LogCaptureFixture) -> None:
    app = App()
    log: List[str] = []

    def make(name: str, fail: bool) -> Any:
        def factory() -> Tuple[str, Any]:
            def release() -> None:
                log.append(name)
                if fail:
                    raise RuntimeError(f"{name} cleanup failed")

            return name, release

        return factory

    app.register("first", make("first", False))
    app.register("second", make("second", True))
    app.register("third", make("third", False))

    @app.get("/", depends=["first", "second", "third"])
    def endpoint(first: str, second: str, third: str) -> List[str]:
        return [first, second, third]

    resp = TestClient(app).get("/")
    assert resp.status_code == 200
    assert resp.json() == ["first", "second", "third"]
    assert log == ["first", "second", "third"]
    assert "second cleanup failed" in caplog.text


def test_resolution_failure_still_cleans_up() -> None:
    app = App()
    log: List[str] = []

    @app.register("conn")
    def conn() -> Generator[str, None, None]:
        yield "conn"
        log.append("close")

    @app.register("broken")
    def broken() -> None:
        raise ValueError("cannot connect")

    @app.get("/", depends=["conn", "broken"])
    def endpoint(conn: str, broken: None) -> None:
        log.append("handler")

    resp = TestClient(app).get("/")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Dependency resolution failed"}
    assert log == ["close"]


def test_resolution_failure_detail_can_be_exposed() -> None:
    app = App(settings=Settings(expose_errors=True))

    @app.get("/", depends={"value": lambda: 1 / 0})
    def endpoint(value: float) -> None:
        ...

    resp = TestClient(app).get("/")
    assert resp.status_code == 500
    assert "ZeroDivisionError" in resp.json()["detail"]


def test_http_exception_from_dependency() -> None:
    app = App()

    def authenticate(request: Request) -> str:
        token = request.headers.get("authorization")
        if token is None:
            raise HTTPException(401)
        return token

    def forbid() -> None:
        raise StarletteHTTPException(403, detail="nope")

    @app.get("/me", depends={"token": authenticate})
    def me(token: str) -> Dict[str, str]:
        return {"token": token}

    @app.get("/admin", depends={"check": forbid})
    def admin(check: None) -> None:
        ...

    client = TestClient(app)
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Unauthorized"}
    assert client.get("/me", headers={"authorization": "abc"}).json() == {"token": "abc"}

    resp = client.get("/admin")
    assert resp.status_code == 403
    assert resp.json() == {"detail": "nope"}


def test_response_bypasses_validation() -> None:
    app = App()
    log: List[str] = []

    @app.get("/", response_schema=Item)
    def endpoint(background: BackgroundTasks) -> PlainTextResponse:
        background.add_task(log.append, "task")
        return PlainTextResponse("raw")

    resp = TestClient(app).get("/")
    assert resp.status_code == 200
    assert resp.text == "raw"
    assert log == ["task"]


def test_response_schema_filters_fields() -> None:
    app = App()

    @app.get("/item", response_schema=Item)
    def item() -> Dict[str, Any]:
        return {"name": "pen", "price": 1, "secret": "hidden"}

    @app.get("/items", response_schema=[Item])
    def items() -> List[Dict[str, Any]]:
        return [{"name": "pen", "price": 1, "secret": "hidden"}]

    client = TestClient(app)
    assert client.get("/item").json() == {"name": "pen", "price": 1.0}
    assert client.get("/items").json() == [{"name": "pen", "price": 1.0}]


def test_invalid_response_is_a_server_error() -> None:
    app = App()
    released: List[str] = []

    @app.register("conn")
    def conn() -> Generator[None, None, None]:
        yield
        released.append("conn")

    @app.get("/", depends="conn", response_schema=Item)
    def endpoint(conn: None) -> Dict[str, Any]:
        return {"name": "pen"}

    resp = TestClient(app).get("/")
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("Response validation failed")
    assert released == ["conn"]


def test_status_codes_and_headers() -> None:
    app = App()

    @app.post("/default", status_code=201)
    def default() -> Dict[str, str]:
        return {"created": "yes"}

    @app.post("/tuple")
    def as_tuple() -> Tuple[Dict[str, str], int]:
        return {"accepted": "yes"}, 202

    @app.post("/headers")
    def with_headers() -> Tuple[Dict[str, str], int, Dict[str, str]]:
        return {"ok": "yes"}, 200, {"x-extra": "1"}

    client = TestClient(app)
    assert client.post("/default").status_code == 201
    resp = client.post("/tuple")
    assert resp.status_code == 202
    assert resp.json() == {"accepted": "yes"}
    assert client.post("/headers").headers["x-extra"] == "1"


def test_default_status_code_from_settings() -> None:
    app = App(settings=Settings(default_status_code=202))

    @app.get("/")
    def endpoint() -> None:
        ...

    assert TestClient(app).get("/").status_code == 202


def test_handler_receives_context_values() -> None:
    app = App()

    @app.get("/users/{user_id}")
    async def endpoint(input: RequestInput, request: Request, task: Any, container: Any) -> Dict[str, Any]:
        return {
            "path": input.path,
            "method": request.method,
            "has_task": task is not None,
            "container": container is app.container,
        }

    assert TestClient(app).get("/users/7").json() == {
        "path": {"user_id": "7"},
        "method": "GET",
        "has_task": True,
        "container": True,
    }


def test_tasks_started_through_the_handle_finish_before_cleanup() -> None:
    app = App()
    timeline: List[str] = []

    async def side_work() -> None:
        timeline.append("side work")

    @app.register("conn")
    def conn() -> Generator[None, None, None]:
        yield
        timeline.append("close")

    def start(task: Any) -> None:
        task.start_soon(side_work)

    @app.get("/", depends={"conn": None, "started": start})
    def endpoint(conn: None, started: None) -> None:
        ...

    TestClient(app).get("/")
    assert timeline == ["side work", "close"]


def test_wiring_errors() -> None:
    app = App()

    with pytest.raises(WiringError):

        @app.get("/", depends=["db"])
        def no_parameter() -> None:
            ...

    with pytest.raises(WiringError):

        @app.get("/")
        def unsatisfiable(inp: Any, req: Any, t: Any, something: int) -> None:
            ...

    with pytest.raises(WiringError):

        @app.get("/", depends={"request": lambda: 1})
        def reserved(request: Any) -> None:
            ...


def test_handler_with_var_keyword() -> None:
    app = App()
    app.register("a", lambda: 1)
    app.register("b", lambda: 2)

    @app.get("/", depends=["a", "b"])
    def endpoint(**values: int) -> Dict[str, int]:
        return values

    assert TestClient(app).get("/").json() == {"a": 1, "b": 2}


def test_inline_descriptor() -> None:
    app = App()

    def get_page(input: RequestInput) -> int:
        return int(input.query.get("page", 1))

    @app.get("/", depends=Depends(get_page))
    def endpoint(get_page: int) -> Dict[str, int]:
        return {"page": get_page}

    assert TestClient(app).get("/?page=3").json() == {"page": 3}


def test_handler_receives_context_by_position() -> None:
    app = App()
    app.register("db", lambda: "db")

    @app.get("/users/{user_id}", depends=["db"])
    def endpoint(inp: RequestInput, req: Request, t: Any, db: str) -> Dict[str, Any]:
        return {
            "user_id": inp.path["user_id"],
            "method": req.method,
            "has_task": t is not None,
            "db": db,
        }

    assert TestClient(app).get("/users/3").json() == {
        "user_id": "3",
        "method": "GET",
        "has_task": True,
        "db": "db",
    }


def test_positional_context_mixed_with_names() -> None:
    app = App()

    @app.get("/")
    def endpoint(inp: RequestInput, request: Request, t: Any) -> Dict[str, Any]:
        return {"query": inp.query, "method": request.method, "has_task": t is not None}

    assert TestClient(app).get("/?a=1").json() == {
        "query": {"a": "1"},
        "method": "GET",
        "has_task": True,
    }


@pytest.mark.anyio
async def test_cleanup_survives_cancellation() -> None:
    log: List[str] = []
    container = Container()

    async def conn() -> AsyncGenerator[str, None]:
        log.append("open")
        try:
            yield "conn"
        finally:
            await anyio.sleep(0)
            log.append("close")

    container.register("conn", conn)

    async def slow(conn: str) -> None:
        await anyio.sleep(10)

    endpoint = Endpoint(slow, "conn", container=container)

    async def receive() -> Dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [],
        "query_string": b"",
        "path_params": {},
    }
    with anyio.move_on_after(0.1) as cancel_scope:
        await endpoint.handle(Request(scope, receive))
    assert cancel_scope.cancel_called
    assert log == ["open", "close"]

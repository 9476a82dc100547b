from typing import Any, AsyncGenerator, Dict, List

from pydantic import BaseModel
from starlette.testclient import TestClient

from reqdi import App, BackgroundTasks, Depends, HTTPException, RequestInput


class Database:
    def __init__(self) -> None:
        self.users: Dict[int, Dict[str, Any]] = {1: {"id": 1, "name": "Ada", "password": "hunter2"}}
        self.audit: List[str] = []
        self.open = True

    def get_user(self, user_id: int) -> Dict[str, Any]:
        if not self.open:
            raise RuntimeError("database is closed")
        try:
            return self.users[user_id]
        except KeyError:
            raise HTTPException(404) from None


class UserOut(BaseModel):
    id: int
    name: str


app = App()
closed: List[Database] = []


@app.register("db")
async def get_db() -> AsyncGenerator[Database, None]:
    db = Database()
    try:
        yield db
    finally:
        db.open = False
        closed.append(db)


def current_user_id(input: RequestInput) -> int:
    return int(input.path["user_id"])


@app.get(
    "/users/{user_id}",
    depends={"db": None, "user_id": Depends(current_user_id)},
    response_schema=UserOut,
)
async def read_user(db: Database, user_id: int, background: BackgroundTasks) -> Dict[str, Any]:
    # runs before the database is closed
    background.add_task(lambda: db.audit.append(db.get_user(user_id)["name"]))
    return db.get_user(user_id)


def main() -> None:
    with TestClient(app) as client:
        resp = client.get("/users/1")
        assert resp.status_code == 200
        assert resp.json() == {"id": 1, "name": "Ada"}
        assert closed[-1].audit == ["Ada"]
        assert closed[-1].open is False

        resp = client.get("/users/2")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Not Found"}
        assert len(closed) == 2


if __name__ == "__main__":
    main()

from typing import Any, Dict, List

from starlette.testclient import TestClient

from reqdi import App

calls: List[object] = []

app = App()


@app.register("settings")
def load_settings() -> Dict[str, Any]:
    settings = {"greeting": "hello"}
    calls.append(settings)
    return settings


@app.get("/", depends={"primary": "settings", "secondary": "settings"})
def endpoint(primary: Dict[str, Any], secondary: Dict[str, Any]) -> Dict[str, Any]:
    return {"same": primary is secondary, "greeting": primary["greeting"]}


def main() -> None:
    client = TestClient(app)
    assert client.get("/").json() == {"same": True, "greeting": "hello"}
    assert len(calls) == 1


if __name__ == "__main__":
    main()

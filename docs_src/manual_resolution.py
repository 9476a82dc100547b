from typing import Generator, List

import anyio

from reqdi import Container, ContainerRef, Depends, RequestState, ResolutionContext, resolve

log: List[str] = []


def connection() -> Generator[str, None, None]:
    log.append("open")
    yield "conn"
    log.append("close")


def repository(conn: str) -> str:
    return f"repository({conn})"


def service(repo: str, config: str) -> str:
    return f"service({repo}, {config})"


async def main() -> None:
    container = Container()
    container.register("conn", connection)
    container.freeze()

    repo = Depends(repository, conn=ContainerRef("conn"))
    svc = Depends(service, repo=repo, config="production")

    state = RequestState()
    context = ResolutionContext(container=container)
    resolved = await resolve(svc, context, state)
    assert resolved.value == "service(repository(conn), production)"
    assert log == ["open"]

    # the same descriptor is resolved only once per request
    again = await resolve(repo, context, state)
    assert again.value == "repository(conn)"
    assert log == ["open"]

    await state.cleanups.drain()
    assert log == ["open", "close"]


if __name__ == "__main__":
    anyio.run(main)

from typing import Iterator

import pytest

from docs_src import manual_resolution


@pytest.fixture(autouse=True)
def _reset_manual_resolution_log() -> Iterator[None]:
    # the example keeps a module-level log; isolate it per test run (e.g. per anyio backend)
    manual_resolution.log.clear()
    yield
    manual_resolution.log.clear()

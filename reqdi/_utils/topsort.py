from typing import Dict, Hashable, List, TypeVar

from graphlib2 import CycleError, TopologicalSorter

from reqdi.exceptions import DependencyCycleError

T = TypeVar("T", bound=Hashable)


def dependency_order(graph: Dict[T, List[T]]) -> List[T]:
    """Flatten `graph` (node -> nodes it needs) so that every node comes after what it needs"""
    ts = TopologicalSorter(graph)
    try:
        ts.prepare()
    except CycleError as e:
        cycle = e.args[1] if len(e.args) > 1 else ()
        raise DependencyCycleError(
            f"Dependencies form a cycle: {' -> '.join(map(repr, cycle))}"
        ) from e
    order: List[T] = []
    while ts.is_active():
        ready = sorted(ts.get_ready(), key=repr)
        order.extend(ready)
        ts.done(*ready)
    return order

from reqdi.depends._declarations import (
    DependencyDeclaration,
    InlineDepends,
    normalize_declarations,
)
from reqdi.depends._depends import ContainerRef, Depends

__all__ = (
    "ContainerRef",
    "DependencyDeclaration",
    "Depends",
    "InlineDepends",
    "normalize_declarations",
)

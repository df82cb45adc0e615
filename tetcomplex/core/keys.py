"""Opaque simplex handles.

A handle names a slot in the kernel arena of its dimension together with the
slot generation it was issued for. The default-constructed handle of each
kind is the invalid sentinel used as the "not found" / "rejected" result.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True, order=True)
class SimplexKey:
    index: int = -1
    generation: int = 0

    dim: ClassVar[int] = -1

    def is_valid(self) -> bool:
        return self.index >= 0

    def __repr__(self) -> str:
        if self.index < 0:
            return f'{self.__class__.__name__}(invalid)'
        return f'{self.__class__.__name__}({self.index}@{self.generation})'


class NodeKey(SimplexKey):
    dim = 0


class EdgeKey(SimplexKey):
    dim = 1


class FaceKey(SimplexKey):
    dim = 2


class TetKey(SimplexKey):
    dim = 3


KEY_TYPES = (NodeKey, EdgeKey, FaceKey, TetKey)

INVALID_NODE = NodeKey()
INVALID_EDGE = EdgeKey()
INVALID_FACE = FaceKey()
INVALID_TET = TetKey()

__all__ = [
    'SimplexKey', 'NodeKey', 'EdgeKey', 'FaceKey', 'TetKey', 'KEY_TYPES',
    'INVALID_NODE', 'INVALID_EDGE', 'INVALID_FACE', 'INVALID_TET',
]

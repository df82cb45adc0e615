"""Per-dimension container of distinct simplex handles.

Each dimension is an insertion-ordered set so traversal results iterate in a
stable order; the dimension of a handle is read from its key type.
"""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from .keys import SimplexKey, NodeKey, EdgeKey, FaceKey, TetKey


class SimplexSet:
    __slots__ = ('_dims',)

    def __init__(self, keys: Iterable[SimplexKey] = ()):
        self._dims: List[Dict[SimplexKey, None]] = [{}, {}, {}, {}]
        for k in keys:
            self.insert(k)

    # --- element access ---
    def insert(self, key: SimplexKey) -> None:
        self._dims[key.dim][key] = None

    def erase(self, key: SimplexKey) -> None:
        self._dims[key.dim].pop(key, None)

    def contains(self, key: SimplexKey) -> bool:
        return key.dim >= 0 and key in self._dims[key.dim]

    __contains__ = contains

    def copy(self) -> 'SimplexSet':
        out = SimplexSet()
        out._dims = [dict(d) for d in self._dims]
        return out

    def clear(self) -> None:
        for d in self._dims:
            d.clear()

    # --- per-dimension views ---
    @property
    def nodes(self) -> List[NodeKey]:
        return list(self._dims[0])

    @property
    def edges(self) -> List[EdgeKey]:
        return list(self._dims[1])

    @property
    def faces(self) -> List[FaceKey]:
        return list(self._dims[2])

    @property
    def tetrahedra(self) -> List[TetKey]:
        return list(self._dims[3])

    def of_dim(self, dim: int) -> List[SimplexKey]:
        return list(self._dims[dim])

    def size_nodes(self) -> int:
        return len(self._dims[0])

    def size_edges(self) -> int:
        return len(self._dims[1])

    def size_faces(self) -> int:
        return len(self._dims[2])

    def size_tetrahedra(self) -> int:
        return len(self._dims[3])

    def __len__(self) -> int:
        return sum(len(d) for d in self._dims)

    def __iter__(self) -> Iterator[SimplexKey]:
        for d in self._dims:
            yield from d

    def __eq__(self, other) -> bool:
        if not isinstance(other, SimplexSet):
            return NotImplemented
        return all(set(a) == set(b) for a, b in zip(self._dims, other._dims))

    def __repr__(self) -> str:
        sizes = ', '.join(str(len(d)) for d in self._dims)
        return f'SimplexSet({sizes})'

    # --- in-place set algebra ---
    def union(self, other: 'SimplexSet') -> 'SimplexSet':
        for mine, theirs in zip(self._dims, other._dims):
            mine.update(theirs)
        return self

    def intersection(self, other: 'SimplexSet') -> 'SimplexSet':
        for i, theirs in enumerate(other._dims):
            self._dims[i] = {k: None for k in self._dims[i] if k in theirs}
        return self

    def difference(self, other: 'SimplexSet') -> 'SimplexSet':
        for i, theirs in enumerate(other._dims):
            self._dims[i] = {k: None for k in self._dims[i] if k not in theirs}
        return self

    # --- operator forms return new sets ---
    def __or__(self, other: 'SimplexSet') -> 'SimplexSet':
        return self.copy().union(other)

    def __and__(self, other: 'SimplexSet') -> 'SimplexSet':
        return self.copy().intersection(other)

    def __sub__(self, other: 'SimplexSet') -> 'SimplexSet':
        return self.copy().difference(other)


__all__ = ['SimplexSet']

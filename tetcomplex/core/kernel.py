"""Incidence kernel: simplex records, boundary/co-boundary adjacency and the
low-level rebuild helpers used by the topological operators.

Records live in one slot arena per dimension. A handle stores the slot index
and the generation it was issued for; ``remove`` only marks a record dead and
``garbage_collect`` frees dead slots and bumps their generation, so stale
handles are detected on dereference instead of aliasing a new simplex.

Orientation is not stored per face or edge. The winding of a face follows
the order of its three boundary edges: for ``[e0, e1, e2]`` the nodes are
``(e0 & e2, e0 & e1, e1 & e2)``. The node order of a tetrahedron is the
sorted node triple of its first face followed by the apex of its second
face, with the first two swapped when the record is ``flipped``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .constants import EPS_VOLUME
from .errors import InvalidHandleError, TetComplexError
from .geometry import signed_volume
from .keys import (SimplexKey, NodeKey, EdgeKey, FaceKey, TetKey, KEY_TYPES,
                   INVALID_NODE, INVALID_EDGE, INVALID_FACE)
from .logging_utils import get_logger
from .simplex_set import SimplexSet

logger = get_logger('tetcomplex.kernel')

# Virtual vertex coned over the mesh boundary for the collapse link condition
_CONE = object()


@dataclass(eq=False)
class SimplexRecord:
    boundary: List[SimplexKey] = field(default_factory=list)
    co_boundary: Dict[SimplexKey, None] = field(default_factory=dict)
    is_boundary: bool = False
    is_interface: bool = False
    is_crossing: bool = False
    removed: bool = False


@dataclass(eq=False)
class NodeRecord(SimplexRecord):
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass(eq=False)
class TetRecord(SimplexRecord):
    label: int = 0
    flipped: bool = False


def _parity(seq: Sequence, ref: Sequence) -> int:
    """Parity (0 even, 1 odd) of the permutation taking ``ref`` to ``seq``."""
    perm = [list(ref).index(x) for x in seq]
    inversions = 0
    for i in range(len(perm)):
        for j in range(i + 1, len(perm)):
            if perm[i] > perm[j]:
                inversions += 1
    return inversions % 2


def _subsets(nodes) -> set:
    nodes = list(nodes)
    return {frozenset(c) for r in range(1, len(nodes) + 1) for c in combinations(nodes, r)}


class _Arena:
    """Slot storage for the records of one dimension."""
    __slots__ = ('key_type', 'records', 'generations', 'free', 'n_alive')

    def __init__(self, key_type):
        self.key_type = key_type
        self.records: List[Optional[SimplexRecord]] = []
        self.generations: List[int] = []
        self.free: List[int] = []
        self.n_alive = 0

    def add(self, record: SimplexRecord) -> SimplexKey:
        if self.free:
            idx = self.free.pop()
            self.records[idx] = record
        else:
            idx = len(self.records)
            self.records.append(record)
            self.generations.append(0)
        self.n_alive += 1
        return self.key_type(idx, self.generations[idx])

    def lookup(self, key: SimplexKey, allow_removed: bool = False) -> SimplexRecord:
        idx = key.index
        if idx < 0 or idx >= len(self.records) or self.generations[idx] != key.generation:
            raise InvalidHandleError(key)
        rec = self.records[idx]
        if rec is None or (rec.removed and not allow_removed):
            raise InvalidHandleError(key)
        return rec

    def mark_removed(self, key: SimplexKey) -> None:
        rec = self.lookup(key)
        rec.removed = True
        self.n_alive -= 1

    def keys(self) -> Iterator[SimplexKey]:
        for idx, rec in enumerate(self.records):
            if rec is not None and not rec.removed:
                yield self.key_type(idx, self.generations[idx])

    def collect(self) -> int:
        freed = 0
        for idx, rec in enumerate(self.records):
            if rec is not None and rec.removed:
                self.records[idx] = None
                self.generations[idx] += 1
                self.free.append(idx)
                freed += 1
        return freed


class IncidenceKernel:
    """Owner of all simplex records and their adjacency."""

    def __init__(self):
        self._arenas = [_Arena(k) for k in KEY_TYPES]

    # ------------------------------------------------------------------
    # Dereference
    # ------------------------------------------------------------------
    def find(self, key: SimplexKey) -> SimplexRecord:
        if not isinstance(key, SimplexKey) or key.dim < 0:
            raise InvalidHandleError(key)
        return self._arenas[key.dim].lookup(key)

    def find_node(self, key: NodeKey) -> NodeRecord:
        return self.find(key)  # type: ignore[return-value]

    def find_edge(self, key: EdgeKey) -> SimplexRecord:
        return self.find(key)

    def find_face(self, key: FaceKey) -> SimplexRecord:
        return self.find(key)

    def find_tetrahedron(self, key: TetKey) -> TetRecord:
        return self.find(key)  # type: ignore[return-value]

    def _raw(self, key: SimplexKey) -> SimplexRecord:
        return self._arenas[key.dim].lookup(key, allow_removed=True)

    def exists(self, key) -> bool:
        if not isinstance(key, SimplexKey) or key.dim < 0:
            return False
        try:
            self._arenas[key.dim].lookup(key)
        except InvalidHandleError:
            return False
        return True

    def boundary(self, key: SimplexKey) -> List[SimplexKey]:
        return list(self.find(key).boundary)

    def co_boundary(self, key: SimplexKey) -> List[SimplexKey]:
        return list(self.find(key).co_boundary)

    def keys(self, dim: int) -> Iterator[SimplexKey]:
        return self._arenas[dim].keys()

    def size(self, dim: int) -> int:
        return self._arenas[dim].n_alive

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def insert_node(self, position) -> NodeKey:
        pos = np.asarray(position, dtype=np.float64).reshape(3).copy()
        return self._arenas[0].add(NodeRecord(position=pos))

    def insert_edge(self, n1: NodeKey, n2: NodeKey) -> EdgeKey:
        if n1 == n2:
            raise TetComplexError(f'edge endpoints must differ: {n1!r}')
        self.find(n1); self.find(n2)
        key = self._arenas[1].add(SimplexRecord(boundary=[n1, n2]))
        self.find(n1).co_boundary[key] = None
        self.find(n2).co_boundary[key] = None
        return key

    def insert_face(self, e1: EdgeKey, e2: EdgeKey, e3: EdgeKey) -> FaceKey:
        edges = [e1, e2, e3]
        nodes = set()
        for a, b in ((e1, e2), (e2, e3), (e1, e3)):
            shared = set(self.find(a).boundary) & set(self.find(b).boundary)
            if a == b or len(shared) != 1:
                raise TetComplexError(f'edges {a!r} and {b!r} do not bound a triangle')
            nodes |= shared
        if len(nodes) != 3:
            raise TetComplexError(f'edges {edges!r} do not form a triangle')
        key = self._arenas[2].add(SimplexRecord(boundary=edges))
        for e in edges:
            self.find(e).co_boundary[key] = None
        return key

    def insert_tetrahedron(self, f1: FaceKey, f2: FaceKey, f3: FaceKey, f4: FaceKey,
                           label: int = 0) -> TetKey:
        faces = [f1, f2, f3, f4]
        if len(set(faces)) != 4:
            raise TetComplexError(f'tetrahedron needs 4 distinct faces, got {faces!r}')
        nodes = set()
        for f in faces:
            nodes.update(self.face_nodes(f))
        if len(nodes) != 4:
            raise TetComplexError(f'faces {faces!r} span {len(nodes)} nodes, expected 4')
        key = self._arenas[3].add(TetRecord(boundary=faces, label=int(label)))
        for f in faces:
            self.find(f).co_boundary[key] = None
        return key

    def insert_tetrahedron_from_nodes(self, nodes: Sequence[NodeKey], label: int = 0) -> TetKey:
        """Create the tetrahedron with the given node order, reusing existing
        edges and faces. New faces are wound outward with respect to it."""
        nodes = list(nodes)
        faces = []
        for i in range(4):
            tri = [n for j, n in enumerate(nodes) if j != i]
            if _parity(tri + [nodes[i]], nodes):
                tri[0], tri[1] = tri[1], tri[0]
            faces.append(self._get_or_insert_face(*tri))
        t = self.insert_tetrahedron(*faces, label=label)
        if _parity(self.tet_nodes(t), nodes):
            self.invert_orientation(t)
        return t

    def _get_or_insert_edge(self, a: NodeKey, b: NodeKey) -> EdgeKey:
        e = self.edge_between(a, b)
        return e if e.is_valid() else self.insert_edge(a, b)

    def _get_or_insert_face(self, a: NodeKey, b: NodeKey, c: NodeKey) -> FaceKey:
        f = self.face_between(a, b, c)
        if f.is_valid():
            return f
        return self.insert_face(self._get_or_insert_edge(a, b),
                                self._get_or_insert_edge(b, c),
                                self._get_or_insert_edge(c, a))

    # ------------------------------------------------------------------
    # Removal, merge, compaction
    # ------------------------------------------------------------------
    def remove(self, key: SimplexKey) -> None:
        """Logically delete ``key`` and detach it from its neighbours."""
        rec = self.find(key)
        for b in rec.boundary:
            self._raw(b).co_boundary.pop(key, None)
        for c in rec.co_boundary:
            crec = self._raw(c)
            crec.boundary = [b for b in crec.boundary if b != key]
        rec.co_boundary.clear()
        self._arenas[key.dim].mark_removed(key)

    def merge(self, keep: SimplexKey, drop: SimplexKey) -> SimplexKey:
        """Fuse ``drop`` into ``keep``: every simplex bounded by ``drop`` is
        bounded by ``keep`` afterwards, at the same position in its boundary."""
        if type(keep) is not type(drop) or keep == drop:
            raise TetComplexError(f'cannot merge {drop!r} into {keep!r}')
        krec = self.find(keep)
        drec = self.find(drop)
        for c in drec.co_boundary:
            crec = self._raw(c)
            crec.boundary = [keep if b == drop else b for b in crec.boundary]
            krec.co_boundary[c] = None
        for b in drec.boundary:
            self._raw(b).co_boundary.pop(drop, None)
        drec.co_boundary.clear()
        self._arenas[drop.dim].mark_removed(drop)
        return keep

    def garbage_collect(self) -> Dict[str, int]:
        counts = {}
        for name, arena in zip(('nodes', 'edges', 'faces', 'tetrahedra'), self._arenas):
            counts[name] = arena.collect()
        return counts

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    @staticmethod
    def _seeds(key_or_set) -> List[SimplexKey]:
        if isinstance(key_or_set, SimplexSet):
            return list(key_or_set)
        return [key_or_set]

    def star(self, key_or_set) -> SimplexSet:
        """All simplices having a seed in their transitive boundary."""
        out = SimplexSet()
        stack = self._seeds(key_or_set)
        while stack:
            k = stack.pop()
            for c in self.find(k).co_boundary:
                if c not in out:
                    out.insert(c)
                    stack.append(c)
        return out

    def closure(self, key_or_set) -> SimplexSet:
        """The seeds and every simplex in their transitive boundary."""
        seeds = self._seeds(key_or_set)
        out = SimplexSet(seeds)
        stack = list(seeds)
        while stack:
            k = stack.pop()
            for b in self.find(k).boundary:
                if b not in out:
                    out.insert(b)
                    stack.append(b)
        return out

    def link(self, key_or_set) -> SimplexSet:
        cl = self.closure(key_or_set)
        touching = self.star(cl).union(cl)
        return self.closure(self.star(key_or_set)).difference(touching)

    # ------------------------------------------------------------------
    # Ordered boundary queries
    # ------------------------------------------------------------------
    def edge_nodes(self, e: EdgeKey) -> List[NodeKey]:
        return list(self.find(e).boundary)

    def _shared_node(self, e1: EdgeKey, e2: EdgeKey) -> NodeKey:
        first = self.find(e1).boundary
        for n in self.find(e2).boundary:
            if n in first:
                return n
        raise TetComplexError(f'edges {e1!r} and {e2!r} share no node')

    def face_nodes(self, f: FaceKey) -> List[NodeKey]:
        e0, e1, e2 = self.find(f).boundary
        return [self._shared_node(e0, e2), self._shared_node(e0, e1), self._shared_node(e1, e2)]

    def tet_nodes(self, t: TetKey) -> List[NodeKey]:
        rec = self.find(t)
        base = sorted(self.face_nodes(rec.boundary[0]))
        apex = next(n for n in self.face_nodes(rec.boundary[1]) if n not in base)
        if rec.flipped:
            base[0], base[1] = base[1], base[0]
        return base + [apex]

    def tet_faces(self, t: TetKey) -> List[FaceKey]:
        """Faces of ``t``, the i-th one opposite to the i-th node."""
        faces = self.find(t).boundary
        out = []
        for n in self.tet_nodes(t):
            out.append(next(f for f in faces if n not in self.face_nodes(f)))
        return out

    def tet_edges(self, t: TetKey) -> List[EdgeKey]:
        nodes = self.tet_nodes(t)
        edges = {}
        for f in self.find(t).boundary:
            for e in self.find(f).boundary:
                edges[frozenset(self.find(e).boundary)] = e
        return [edges[frozenset((nodes[i], nodes[j]))] for i, j in combinations(range(4), 2)]

    def simplex_nodes(self, key: SimplexKey) -> List[NodeKey]:
        if key.dim == 0:
            self.find(key)
            return [key]
        if key.dim == 1:
            return self.edge_nodes(key)
        if key.dim == 2:
            return self.face_nodes(key)
        return self.tet_nodes(key)

    def edge_between(self, a: NodeKey, b: NodeKey) -> EdgeKey:
        for e in self.find(a).co_boundary:
            if b in self.find(e).boundary:
                return e
        return INVALID_EDGE

    def face_between(self, a: NodeKey, b: NodeKey, c: NodeKey) -> FaceKey:
        e = self.edge_between(a, b)
        if not e.is_valid():
            return INVALID_FACE
        for f in self.find(e).co_boundary:
            if c in self.face_nodes(f):
                return f
        return INVALID_FACE

    # ------------------------------------------------------------------
    # Geometry and orientation primitives
    # ------------------------------------------------------------------
    def get_pos(self, n: NodeKey) -> np.ndarray:
        return self.find_node(n).position.copy()

    def set_pos(self, n: NodeKey, p) -> None:
        self.find_node(n).position = np.asarray(p, dtype=np.float64).reshape(3).copy()

    def signed_volume(self, t: TetKey) -> float:
        return signed_volume(*[self.find_node(n).position for n in self.tet_nodes(t)])

    def is_inverted(self, t: TetKey) -> bool:
        return self.signed_volume(t) < 0.0

    def face_is_consistent(self, f: FaceKey, t: TetKey) -> bool:
        """True when the winding of ``f`` has its normal pointing out of ``t``."""
        tri = self.face_nodes(f)
        nodes = self.tet_nodes(t)
        apex = next(n for n in nodes if n not in tri)
        return _parity(tri + [apex], nodes) == 0

    def reverse_face(self, f: FaceKey) -> None:
        self.find(f).boundary.reverse()

    def orient_face_helper(self, f: FaceKey, t: TetKey) -> bool:
        """Wind ``f`` outward with respect to ``t``; True when it was reversed."""
        if self.face_is_consistent(f, t):
            return False
        self.reverse_face(f)
        return True

    def orient_faces_consistently(self, t: TetKey) -> None:
        for f in self.find(t).boundary:
            self.orient_face_helper(f, t)

    def invert_orientation(self, t: TetKey) -> None:
        rec = self.find_tetrahedron(t)
        rec.flipped = not rec.flipped

    # ------------------------------------------------------------------
    # Subdivision
    # ------------------------------------------------------------------
    def _subdivide(self, key: SimplexKey, position) -> Tuple[NodeKey, Dict[TetKey, TetKey]]:
        """Replace every tetrahedron around ``key`` by its cone from a new node.

        Each child is the parent node list with one node of ``key`` replaced
        by the new node, so children keep the orientation of their parent.
        """
        seed = self.simplex_nodes(key)
        doomed = self.star(key)
        doomed.insert(key)
        parents = [(t, self.tet_nodes(t), self.find_tetrahedron(t).label)
                   for t in doomed.tetrahedra]
        for dim in (3, 2, 1):
            for k in doomed.of_dim(dim):
                self.remove(k)
        n = self.insert_node(position)
        children: Dict[TetKey, TetKey] = {}
        for parent, nodes, label in parents:
            for v in seed:
                child = self.insert_tetrahedron_from_nodes(
                    [n if x == v else x for x in nodes], label=label)
                children[child] = parent
        return n, children

    def split_edge_helper(self, e: EdgeKey, position) -> Tuple[NodeKey, Dict[TetKey, TetKey]]:
        self.find_edge(e)
        return self._subdivide(e, position)

    def split_face_helper(self, f: FaceKey, position) -> Tuple[NodeKey, Dict[TetKey, TetKey]]:
        self.find_face(f)
        return self._subdivide(f, position)

    def split_tetrahedron(self, t: TetKey, position) -> Tuple[NodeKey, Dict[TetKey, TetKey]]:
        self.find_tetrahedron(t)
        return self._subdivide(t, position)

    # ------------------------------------------------------------------
    # Contraction
    # ------------------------------------------------------------------
    def _augmented_closed_star(self, n: NodeKey) -> set:
        st = self.star(n)
        out = set()
        for t in st.tetrahedra:
            out |= _subsets(self.tet_nodes(t))
        for f in st.faces:
            if len(self.find(f).co_boundary) == 1:
                out |= _subsets(self.face_nodes(f) + [_CONE])
        return out

    def link_condition(self, e: EdgeKey) -> bool:
        """``lk(a) & lk(b) == lk(ab)`` with the mesh boundary coned off.

        The cone makes an interior edge joining two boundary nodes fail, so
        contraction never pinches the boundary.
        """
        a, b = self.edge_nodes(e)
        ka = self._augmented_closed_star(a)
        kb = self._augmented_closed_star(b)
        lk_a = {s - {a} for s in ka if a in s and len(s) > 1}
        lk_b = {s - {b} for s in kb if b in s and len(s) > 1}
        ab = frozenset((a, b))
        lk_ab = {s - ab for s in ka if ab <= s and len(s) > 2}
        return (lk_a & lk_b) == lk_ab

    def edge_collapse_helper(self, e: EdgeKey, keep: NodeKey, drop: NodeKey, position=None,
                             check_geometry: bool = True, eps: float = EPS_VOLUME) -> NodeKey:
        """Contract ``e`` by moving ``drop`` onto ``keep``.

        Returns ``keep`` or the invalid node when the contraction is rejected,
        in which case nothing was modified.
        """
        if set(self.edge_nodes(e)) != {keep, drop} or keep == drop:
            raise TetComplexError(f'{keep!r} and {drop!r} are not the endpoints of {e!r}')
        if not self.link_condition(e):
            logger.debug('collapse %r rejected: link condition', e)
            return INVALID_NODE
        target = self.find_node(keep).position if position is None else \
            np.asarray(position, dtype=np.float64).reshape(3)
        plans = []
        for t in self.star(drop).tetrahedra:
            nodes = self.tet_nodes(t)
            if keep in nodes:
                continue
            plans.append(([keep if x == drop else x for x in nodes], self.find_tetrahedron(t).label))
        if check_geometry:
            moved = [nodes for nodes, _ in plans]
            if position is not None:
                for t in self.star(keep).tetrahedra:
                    nodes = self.tet_nodes(t)
                    if drop not in nodes:
                        moved.append(nodes)
            for nodes in moved:
                pts = [target if x == keep else self.find_node(x).position for x in nodes]
                if signed_volume(*pts) <= eps:
                    logger.debug('collapse %r rejected: tetrahedron %s would invert', e, nodes)
                    return INVALID_NODE
        doomed = self.star(drop)
        doomed.insert(drop)
        for dim in (3, 2, 1, 0):
            for k in doomed.of_dim(dim):
                self.remove(k)
        self.find_node(keep).position = np.array(target, dtype=np.float64)
        for nodes, label in plans:
            self.insert_tetrahedron_from_nodes(nodes, label=label)
        return keep


__all__ = ['IncidenceKernel', 'SimplexRecord', 'NodeRecord', 'TetRecord']

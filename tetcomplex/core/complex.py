"""Tetrahedral simplicial complex with flag maintenance and local editing."""
from __future__ import annotations

import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import ComplexConfig
from .errors import MeshValidityError, TetComplexError
from .flags import init_flags, update_flags
from .geometry import ensure_positive_orientation
from .kernel import IncidenceKernel
from .keys import (SimplexKey, NodeKey, EdgeKey, FaceKey, TetKey,
                   INVALID_NODE, INVALID_EDGE, INVALID_FACE, INVALID_TET)
from .logging_utils import get_logger
from .operations import (op_split, op_collapse, op_collapse_new, op_flip_32, op_flip_23, op_flip_44,
                         op_flip_23_new, op_flip_32_new, op_flip_44_new, op_flip_22_new,
                         op_create_faces, op_create_tetrahedron, op_create_tetrahedra,
                         op_insert_tetrahedron, SPLIT_OP_NAMES)
from .simplex_set import SimplexSet
from .stats import OpStats, print_stats as _print_stats
from .validity import check_complex_validity, check_orientation, check_flags_consistent


def _unique(keys) -> list:
    return list(dict.fromkeys(keys))


class TetComplex:
    def __init__(self, points, tets, labels=None, config: Optional[ComplexConfig] = None):
        """Build a complex from raw arrays.

        Parameters
        ----------
        points : (N,3) float array-like
        tets : (M,4) int array-like
            Node indices per tetrahedron. Rows with negative volume are
            reordered to positive orientation.
        labels : (M,) int array-like, optional
            Material label per tetrahedron, 0 (exterior material) by default.
        config : ComplexConfig, optional
        """
        self.logger = get_logger(f'tetcomplex.complex.{self.__class__.__name__}')
        self.config = config or ComplexConfig()
        pts = np.asarray(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise ValueError("points must have shape (N,3)")
        T = np.asarray(tets, dtype=np.int64)
        if T.ndim != 2 or T.shape[1] != 4:
            raise ValueError("tets must have shape (M,4)")
        if T.size and (T.min() < 0 or T.max() >= len(pts)):
            raise ValueError("tetrahedron node indices out of range")
        rows = np.sort(T, axis=1)
        if T.size and np.any(rows[:, 1:] == rows[:, :-1]):
            raise ValueError("tetrahedra must have 4 distinct nodes")
        if len(np.unique(rows, axis=0)) != len(rows):
            raise ValueError("duplicate tetrahedra")
        if labels is None:
            L = np.zeros(len(T), dtype=np.int64)
        else:
            L = np.asarray(labels, dtype=np.int64)
            if L.shape != (len(T),):
                raise ValueError("labels must have shape (M,)")
        T = ensure_positive_orientation(pts, T)

        self.kernel = IncidenceKernel()
        self._op_stats = defaultdict(OpStats)
        node_keys = [self.kernel.insert_node(p) for p in pts]
        for row, label in zip(T, L):
            self.kernel.insert_tetrahedron_from_nodes([node_keys[int(i)] for i in row], label=int(label))
        self.init()
        self.logger.info("built complex: %d nodes, %d edges, %d faces, %d tetrahedra", *self.size())
        if self.config.validate_on_build:
            ok, msgs = self.validity_check()
            if not ok:
                raise MeshValidityError(msgs)

    def __repr__(self) -> str:
        return 'TetComplex(nodes={}, edges={}, faces={}, tetrahedra={})'.format(*self.size())

    # --- Stats helpers ---
    def _get_op_stats(self, name: str) -> OpStats:
        return self._op_stats[name]

    def stats_summary(self):
        return {k: v.to_dict() for k, v in self._op_stats.items()}

    def print_stats(self, pretty: bool = True, file=None):
        """Delegate to `stats.print_stats` for presentation."""
        _print_stats(self.stats_summary(), file=file, pretty=pretty)

    def _record_time(self, op_name: str, duration: float):
        self._op_stats[op_name].record_time(duration)

    def reset_stats(self, drop_ops: bool = False):
        """Reset operation statistics.

        With ``drop_ops`` the registry is cleared so only future operations
        recreate entries; otherwise existing entries are zeroed in place.
        """
        if drop_ops:
            self._op_stats.clear()
        else:
            for s in self._op_stats.values():
                s.reset()

    # ------------------------------------------------------------------
    # Iteration and attributes
    # ------------------------------------------------------------------
    def nodes(self) -> List[NodeKey]:
        return list(self.kernel.keys(0))

    def edges(self) -> List[EdgeKey]:
        return list(self.kernel.keys(1))

    def faces(self) -> List[FaceKey]:
        return list(self.kernel.keys(2))

    def tetrahedra(self) -> List[TetKey]:
        return list(self.kernel.keys(3))

    def size(self) -> Tuple[int, int, int, int]:
        return tuple(self.kernel.size(d) for d in range(4))

    def exists(self, key) -> bool:
        return self.kernel.exists(key)

    def get_pos(self, n: NodeKey) -> np.ndarray:
        return self.kernel.get_pos(n)

    def set_pos(self, n: NodeKey, p) -> None:
        self.kernel.set_pos(n, p)

    def is_boundary(self, key: SimplexKey) -> bool:
        return self.kernel.find(key).is_boundary

    def is_interface(self, key: SimplexKey) -> bool:
        return self.kernel.find(key).is_interface

    def is_crossing(self, key: SimplexKey) -> bool:
        return self.kernel.find(key).is_crossing

    def get_label(self, t: TetKey) -> int:
        return self.kernel.find_tetrahedron(t).label

    def set_label(self, t: TetKey, label: int) -> None:
        self.kernel.find_tetrahedron(t).label = int(label)
        self.update(self.kernel.closure(t))

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def star(self, key_or_set) -> SimplexSet:
        return self.kernel.star(key_or_set)

    def closure(self, key_or_set) -> SimplexSet:
        return self.kernel.closure(key_or_set)

    def link(self, key_or_set) -> SimplexSet:
        return self.kernel.link(key_or_set)

    # ------------------------------------------------------------------
    # Derived queries
    # ------------------------------------------------------------------
    def get_nodes(self, key: SimplexKey) -> List[NodeKey]:
        return self.kernel.simplex_nodes(key)

    def get_edges(self, key):
        """Edges of a node, face, tetrahedron or list of tetrahedra."""
        kernel = self.kernel
        if isinstance(key, (list, tuple)):
            return _unique(e for t in key for f in kernel.find(t).boundary
                           for e in kernel.find(f).boundary)
        if isinstance(key, NodeKey):
            return kernel.co_boundary(key)
        if isinstance(key, EdgeKey):
            kernel.find(key)
            return [key]
        if isinstance(key, FaceKey):
            return kernel.boundary(key)
        return kernel.tet_edges(key)

    def get_faces(self, key):
        """Faces of a node, edge, tetrahedron or list of tetrahedra."""
        kernel = self.kernel
        if isinstance(key, (list, tuple)):
            return _unique(f for t in key for f in kernel.find(t).boundary)
        if isinstance(key, NodeKey):
            return kernel.star(key).faces
        if isinstance(key, EdgeKey):
            return kernel.co_boundary(key)
        if isinstance(key, FaceKey):
            kernel.find(key)
            return [key]
        return kernel.tet_faces(key)

    def get_tets(self, key: SimplexKey) -> List[TetKey]:
        if isinstance(key, FaceKey):
            return self.kernel.co_boundary(key)
        if isinstance(key, TetKey):
            self.kernel.find(key)
            return [key]
        return self.kernel.star(key).tetrahedra

    def get_edge(self, k1, k2) -> EdgeKey:
        """The unique edge joining two nodes, or shared by two faces."""
        if not (self.exists(k1) and self.exists(k2)):
            return INVALID_EDGE
        if isinstance(k1, NodeKey) and isinstance(k2, NodeKey):
            edges = (self.star(k1) & self.star(k2)).edges
        elif isinstance(k1, FaceKey) and isinstance(k2, FaceKey):
            edges = self.intersection(self.kernel.boundary(k1), self.kernel.boundary(k2))
        else:
            return INVALID_EDGE
        return edges[0] if len(edges) == 1 else INVALID_EDGE

    def get_face(self, *keys) -> FaceKey:
        """The unique face spanned by three nodes, or shared by two tetrahedra."""
        if not all(self.exists(k) for k in keys):
            return INVALID_FACE
        if len(keys) == 3 and all(isinstance(k, NodeKey) for k in keys):
            faces = (self.star(keys[0]) & self.star(keys[1]) & self.star(keys[2])).faces
        elif len(keys) == 2 and all(isinstance(k, TetKey) for k in keys):
            faces = self.intersection(self.kernel.boundary(keys[0]), self.kernel.boundary(keys[1]))
        else:
            return INVALID_FACE
        return faces[0] if len(faces) == 1 else INVALID_FACE

    def get_tet(self, t: TetKey, f: FaceKey) -> TetKey:
        """The tetrahedron on the other side of ``f`` from ``t``."""
        if not (self.exists(t) and self.exists(f)):
            return INVALID_TET
        others = [x for x in self.kernel.co_boundary(f) if x != t]
        return others[0] if len(others) == 1 else INVALID_TET

    def get_apex(self, k1, k2) -> NodeKey:
        """Node of tetrahedron ``k1`` opposite to face ``k2``, or node of face
        ``k1`` opposite to edge ``k2``."""
        if not (self.exists(k1) and self.exists(k2)) or k2.dim != k1.dim - 1 or k1.dim < 2:
            return INVALID_NODE
        nodes = (self.closure(k1) - self.closure(k2)).nodes
        return nodes[0] if len(nodes) == 1 else INVALID_NODE

    def get_apices(self, f: FaceKey) -> List[NodeKey]:
        return self.link(f).nodes

    @staticmethod
    def uni(keys1: Sequence, keys2: Sequence) -> list:
        return _unique(list(keys1) + list(keys2))

    @staticmethod
    def intersection(keys1: Sequence, keys2: Sequence) -> list:
        return [k for k in keys1 if k in keys2]

    @staticmethod
    def difference(keys1: Sequence, keys2: Sequence) -> list:
        """Symmetric difference, keeping the order of appearance."""
        return [k for k in keys1 if k not in keys2] + [k for k in keys2 if k not in keys1]

    def is_neighbour(self, key: SimplexKey, other) -> bool:
        """True when ``key`` shares a boundary simplex with ``other``.

        For a list, true when the number of boundary simplices of ``key``
        found in the boundary of some member equals ``len(other)``.
        """
        boundary = self.kernel.find(key).boundary
        if isinstance(other, (list, tuple)):
            found = 0
            for b in boundary:
                if any(b in self.kernel.find(k).boundary for k in other):
                    found += 1
            return found == len(other)
        return any(b in self.kernel.find(other).boundary for b in boundary)

    # ------------------------------------------------------------------
    # Flags and orientation
    # ------------------------------------------------------------------
    def init(self) -> None:
        """Recompute every flag from scratch and wind flagged faces."""
        init_flags(self.kernel)
        self.orient_faces(SimplexSet(self.kernel.keys(2)))

    def update(self, dirty: SimplexSet) -> None:
        update_flags(self.kernel, dirty)
        self.orient_faces(dirty)

    def is_inverted(self, t: TetKey) -> bool:
        return self.kernel.is_inverted(t)

    def orient_face(self, f: FaceKey) -> None:
        """Wind ``f`` outward from its single tetrahedron, or from the
        lower-label one of its two tetrahedra (smaller key on equal labels)."""
        tets = self.kernel.co_boundary(f)
        if not tets:
            return
        owner = min(tets, key=lambda t: (self.get_label(t), t))
        self.kernel.orient_face_helper(f, owner)

    def orient_faces(self, dirty: SimplexSet) -> None:
        for f in dirty.faces:
            if self.exists(f) and (self.is_boundary(f) or self.is_interface(f)):
                self.orient_face(f)

    # ------------------------------------------------------------------
    # Topological operators
    # ------------------------------------------------------------------
    def split(self, key, position=None) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_split(self, key, position)
        finally:
            self._record_time(SPLIT_OP_NAMES.get(getattr(key, 'dim', -1), 'split'),
                              time.perf_counter() - t0)

    def collapse(self, e: EdgeKey, keep: Optional[NodeKey] = None, position=None) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_collapse(self, e, keep=keep, position=position)
        finally:
            self._record_time('collapse', time.perf_counter() - t0)

    def collapse_new(self, e: EdgeKey) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_collapse_new(self, e)
        finally:
            self._record_time('collapse_new', time.perf_counter() - t0)

    def flip_32(self, e: EdgeKey) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_flip_32(self, e)
        finally:
            self._record_time('flip_32', time.perf_counter() - t0)

    def flip_23(self, f: FaceKey) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_flip_23(self, f)
        finally:
            self._record_time('flip_23', time.perf_counter() - t0)

    def flip_44(self, f1: FaceKey, f2: FaceKey) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_flip_44(self, f1, f2)
        finally:
            self._record_time('flip_44', time.perf_counter() - t0)

    def flip_22(self, f1: FaceKey, f2: FaceKey) -> NodeKey:
        t0 = time.perf_counter()
        try:
            return op_flip_44(self, f1, f2, name='flip_22')
        finally:
            self._record_time('flip_22', time.perf_counter() - t0)

    def flip_23_new(self, f: FaceKey) -> List[TetKey]:
        t0 = time.perf_counter()
        try:
            return op_flip_23_new(self, f)
        finally:
            self._record_time('flip_23_new', time.perf_counter() - t0)

    def flip_32_new(self, e: EdgeKey) -> List[TetKey]:
        t0 = time.perf_counter()
        try:
            return op_flip_32_new(self, e)
        finally:
            self._record_time('flip_32_new', time.perf_counter() - t0)

    def flip_44_new(self, f1: FaceKey, f2: FaceKey) -> List[TetKey]:
        t0 = time.perf_counter()
        try:
            return op_flip_44_new(self, f1, f2)
        finally:
            self._record_time('flip_44_new', time.perf_counter() - t0)

    def flip_22_new(self, f1: FaceKey, f2: FaceKey) -> List[TetKey]:
        t0 = time.perf_counter()
        try:
            return op_flip_22_new(self, f1, f2)
        finally:
            self._record_time('flip_22_new', time.perf_counter() - t0)

    # Explicit rebuild primitives
    def _run_primitive(self, name: str, op, *args, **kwargs):
        """Run a rebuild primitive, counting a raised TetComplexError as a failure."""
        stats = self._get_op_stats(name)
        stats.attempts += 1
        t0 = time.perf_counter()
        try:
            result = op(self, *args, **kwargs)
        except TetComplexError:
            stats.fail += 1
            raise
        finally:
            self._record_time(name, time.perf_counter() - t0)
        stats.success += 1
        return result

    def create_faces(self, interior_edge: EdgeKey, exterior_edges: Sequence[EdgeKey]) -> List[FaceKey]:
        return self._run_primitive('create_faces', op_create_faces, interior_edge, exterior_edges)

    def create_tetrahedron(self, interior_faces, exterior_faces: List[FaceKey], label: int = 0) -> TetKey:
        return self._run_primitive('create_tetrahedron', op_create_tetrahedron,
                                   interior_faces, exterior_faces, label)

    def create_tetrahedra(self, interior_faces, exterior_faces, label: int = 0) -> List[TetKey]:
        return self._run_primitive('create_tetrahedra', op_create_tetrahedra,
                                   interior_faces, exterior_faces, label)

    def insert_tetrahedron(self, f1: FaceKey, f2: FaceKey, f3: FaceKey, f4: FaceKey,
                           label: int = 0) -> TetKey:
        return self._run_primitive('insert_tetrahedron', op_insert_tetrahedron,
                                   f1, f2, f3, f4, label=label)

    # ------------------------------------------------------------------
    # Maintenance and diagnostics
    # ------------------------------------------------------------------
    def garbage_collect(self) -> Dict[str, int]:
        """Free removed records. Handles to removed simplices become stale."""
        counts = self.kernel.garbage_collect()
        self.logger.info("garbage collected %d nodes, %d edges, %d faces, %d tetrahedra",
                         counts['nodes'], counts['edges'], counts['faces'], counts['tetrahedra'])
        return counts

    def validity_check(self, verbose: bool = True) -> Tuple[bool, List[str]]:
        return check_complex_validity(self.kernel, verbose=verbose)

    def check_orientation(self, verbose: bool = False) -> Tuple[bool, List[str]]:
        return check_orientation(self.kernel, verbose=verbose)

    def check_flags_consistent(self, verbose: bool = False) -> Tuple[bool, List[str]]:
        return check_flags_consistent(self.kernel, verbose=verbose)

    def to_arrays(self):
        """Return ``(points, tets, labels, node_keys)``; ``tets`` indexes into
        ``node_keys`` and rows follow each tetrahedron's node order."""
        node_keys = self.nodes()
        index = {n: i for i, n in enumerate(node_keys)}
        points = np.array([self.get_pos(n) for n in node_keys], dtype=np.float64).reshape(-1, 3)
        tets = self.tetrahedra()
        T = np.array([[index[n] for n in self.kernel.tet_nodes(t)] for t in tets],
                     dtype=np.int64).reshape(-1, 4)
        labels = np.array([self.get_label(t) for t in tets], dtype=np.int64)
        return points, T, labels, node_keys


__all__ = ['TetComplex']

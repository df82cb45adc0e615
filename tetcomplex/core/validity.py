"""Global consistency audits of a tetrahedral complex.

These sweeps visit every tetrahedron (or every flagged simplex) and are meant
as acceptance oracles after bulk edits and in tests, not as per-operation
checks.
"""
from __future__ import annotations

from itertools import combinations
from typing import List, Tuple

from .flags import init_flags, snapshot_flags
from .kernel import IncidenceKernel
from .logging_utils import get_logger

logger = get_logger('tetcomplex.validity')

__all__ = ['check_complex_validity', 'check_orientation', 'check_flags_consistent']


def _shares_boundary(kernel: IncidenceKernel, k1, k2) -> bool:
    return bool(set(kernel.find(k1).boundary) & set(kernel.find(k2).boundary))


def _node_set(kernel: IncidenceKernel, key) -> frozenset:
    level = [key]
    for _ in range(key.dim):
        level = {b for k in level if kernel.exists(k) for b in kernel.find(k).boundary}
    return frozenset(level)


def _duplicate_messages(kernel: IncidenceKernel) -> List[str]:
    msgs = []
    for dim in (1, 2, 3):
        seen = {}
        for k in kernel.keys(dim):
            nodes = _node_set(kernel, k)
            other = seen.setdefault(nodes, k)
            if other != k:
                msgs.append(f'{k!r} duplicates {other!r} on the same {len(nodes)} nodes')
    return msgs


def check_complex_validity(kernel: IncidenceKernel, verbose: bool = False) -> Tuple[bool, List[str]]:
    """Structural audit of every live tetrahedron.

    Returns (ok, messages). Checks that each tetrahedron has 4 pairwise
    adjacent faces, each face 1 or 2 incident tetrahedra matching its
    boundary flag, 3 pairwise adjacent edges, each edge 2 nodes, and that
    every co-boundary contains the simplex that referenced it.
    No two live edges, faces or tetrahedra may span the same nodes.
    """
    msgs: List[str] = []
    for t in kernel.keys(3):
        faces = kernel.find(t).boundary
        if len(faces) != 4:
            msgs.append(f'{t!r} has {len(faces)} faces')
            continue
        dead = [f for f in faces if not kernel.exists(f)]
        if dead:
            msgs.append(f'{t!r} references removed faces {dead!r}')
            continue
        for f in faces:
            frec = kernel.find(f)
            n_tets = len(frec.co_boundary)
            if n_tets not in (1, 2):
                msgs.append(f'{f!r} has {n_tets} incident tetrahedra')
            if frec.is_boundary != (n_tets == 1):
                msgs.append(f'{f!r} boundary flag {frec.is_boundary} but {n_tets} incident tetrahedra')
            if t not in frec.co_boundary:
                msgs.append(f'{f!r} co-boundary misses {t!r}')
            edges = frec.boundary
            if len(edges) != 3:
                msgs.append(f'{f!r} has {len(edges)} edges')
                continue
            for e in edges:
                if not kernel.exists(e):
                    msgs.append(f'{f!r} references removed edge {e!r}')
                    continue
                erec = kernel.find(e)
                if f not in erec.co_boundary:
                    msgs.append(f'{e!r} co-boundary misses {f!r}')
                if len(erec.boundary) != 2:
                    msgs.append(f'{e!r} has {len(erec.boundary)} nodes')
                    continue
                for n in erec.boundary:
                    if not kernel.exists(n):
                        msgs.append(f'{e!r} references removed node {n!r}')
                    elif e not in kernel.find(n).co_boundary:
                        msgs.append(f'{n!r} co-boundary misses {e!r}')
            for e1, e2 in combinations(edges, 2):
                if kernel.exists(e1) and kernel.exists(e2) and not _shares_boundary(kernel, e1, e2):
                    msgs.append(f'edges {e1!r} and {e2!r} of {f!r} are not adjacent')
        for f1, f2 in combinations(faces, 2):
            if not _shares_boundary(kernel, f1, f2):
                msgs.append(f'faces {f1!r} and {f2!r} of {t!r} are not adjacent')
        cl = kernel.closure(t)
        if cl.size_edges() != 6 or cl.size_nodes() != 4:
            msgs.append(f'{t!r} spans {cl.size_edges()} edges and {cl.size_nodes()} nodes')
    msgs.extend(_duplicate_messages(kernel))
    ok = not msgs
    if verbose and not ok:
        for m in msgs:
            logger.error('validity: %s', m)
    return ok, msgs


def check_orientation(kernel: IncidenceKernel, verbose: bool = False) -> Tuple[bool, List[str]]:
    """Report inverted tetrahedra and badly wound boundary/interface faces."""
    msgs: List[str] = []
    for t in kernel.keys(3):
        vol = kernel.signed_volume(t)
        if vol < 0.0:
            msgs.append(f'{t!r} is inverted (signed volume {vol:.3e})')
    for f in kernel.keys(2):
        frec = kernel.find(f)
        if not (frec.is_boundary or frec.is_interface):
            continue
        tets = sorted(frec.co_boundary, key=lambda x: (kernel.find_tetrahedron(x).label, x))
        if tets and not kernel.face_is_consistent(f, tets[0]):
            msgs.append(f'{f!r} is not wound outward from {tets[0]!r}')
    ok = not msgs
    if verbose and not ok:
        for m in msgs:
            logger.error('orientation: %s', m)
    return ok, msgs


def check_flags_consistent(kernel: IncidenceKernel, verbose: bool = False) -> Tuple[bool, List[str]]:
    """Recompute all flags from scratch and compare with the maintained ones.

    The maintained flags are restored afterwards, so the check never repairs
    what it reports.
    """
    before = snapshot_flags(kernel)
    init_flags(kernel)
    after = snapshot_flags(kernel)
    msgs = [f'{k!r} flags {before[k]} recompute to {after[k]}'
            for k in before if before[k] != after[k]]
    for k, (b, i, c) in before.items():
        rec = kernel.find(k)
        rec.is_boundary, rec.is_interface, rec.is_crossing = b, i, c
    ok = not msgs
    if verbose and not ok:
        for m in msgs:
            logger.error('flags: %s', m)
    return ok, msgs

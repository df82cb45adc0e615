"""Boundary / interface / crossing classification.

Flags are a pure function of incidence and tetrahedron labels. Faces are
classified from their incident tetrahedra, edges from their faces and nodes
from their edges, so every pass runs faces first, then edges, then nodes.
"""
from __future__ import annotations

from typing import Dict, Tuple

from .constants import EXTERIOR_LABEL
from .kernel import IncidenceKernel
from .keys import NodeKey, EdgeKey, FaceKey
from .simplex_set import SimplexSet

__all__ = [
    'update_face_flag', 'update_edge_flag', 'update_node_flag', 'count_label_components',
    'init_flags', 'update_flags', 'snapshot_flags',
]


def update_face_flag(kernel: IncidenceKernel, f: FaceKey) -> None:
    rec = kernel.find(f)
    tets = list(rec.co_boundary)
    rec.is_boundary = False
    rec.is_interface = False
    rec.is_crossing = False
    if len(tets) == 1:
        rec.is_boundary = True
        rec.is_interface = kernel.find_tetrahedron(tets[0]).label != EXTERIOR_LABEL
    elif len(tets) == 2:
        l0 = kernel.find_tetrahedron(tets[0]).label
        l1 = kernel.find_tetrahedron(tets[1]).label
        rec.is_interface = l0 != l1


def update_edge_flag(kernel: IncidenceKernel, e: EdgeKey) -> None:
    rec = kernel.find(e)
    boundary = False
    n_interface = 0
    for f in rec.co_boundary:
        frec = kernel.find(f)
        boundary = boundary or frec.is_boundary
        if frec.is_interface:
            n_interface += 1
    rec.is_boundary = boundary
    rec.is_interface = n_interface > 0
    rec.is_crossing = n_interface > 2


def count_label_components(kernel: IncidenceKernel, n: NodeKey) -> int:
    """Number of groups of tetrahedra around ``n`` connected through shared
    faces between tetrahedra of equal label."""
    tets = kernel.star(n).tetrahedra
    remaining = set(tets)
    components = 0
    for seed in tets:
        if seed not in remaining:
            continue
        components += 1
        remaining.discard(seed)
        label = kernel.find_tetrahedron(seed).label
        work = [seed]
        while work:
            t = work.pop()
            for f in kernel.find(t).boundary:
                for nb in kernel.find(f).co_boundary:
                    if nb in remaining and kernel.find_tetrahedron(nb).label == label:
                        remaining.discard(nb)
                        work.append(nb)
    return components


def update_node_flag(kernel: IncidenceKernel, n: NodeKey) -> None:
    rec = kernel.find(n)
    rec.is_boundary = False
    rec.is_interface = False
    rec.is_crossing = False
    for e in rec.co_boundary:
        erec = kernel.find(e)
        rec.is_boundary = rec.is_boundary or erec.is_boundary
        rec.is_interface = rec.is_interface or erec.is_interface
        rec.is_crossing = rec.is_crossing or erec.is_crossing
    if not rec.is_crossing and rec.is_interface:
        rec.is_crossing = count_label_components(kernel, n) > 2


def init_flags(kernel: IncidenceKernel) -> None:
    """Recompute every flag of the complex from scratch."""
    for f in kernel.keys(2):
        update_face_flag(kernel, f)
    for e in kernel.keys(1):
        update_edge_flag(kernel, e)
    for n in kernel.keys(0):
        update_node_flag(kernel, n)


def update_flags(kernel: IncidenceKernel, dirty: SimplexSet) -> None:
    """Recompute the flags of the members of ``dirty`` that still exist."""
    for f in dirty.faces:
        if kernel.exists(f):
            update_face_flag(kernel, f)
    for e in dirty.edges:
        if kernel.exists(e):
            update_edge_flag(kernel, e)
    for n in dirty.nodes:
        if kernel.exists(n):
            update_node_flag(kernel, n)


def snapshot_flags(kernel: IncidenceKernel) -> Dict[object, Tuple[bool, bool, bool]]:
    """Current (boundary, interface, crossing) of every live node, edge and face."""
    out = {}
    for dim in (0, 1, 2):
        for k in kernel.keys(dim):
            rec = kernel.find(k)
            out[k] = (rec.is_boundary, rec.is_interface, rec.is_crossing)
    return out

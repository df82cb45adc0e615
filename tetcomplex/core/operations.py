"""Local topological operators (split, collapse, flips) on a TetComplex.

Every ``op_*`` function takes the complex as first argument, mutates it in
place and reports failure through the invalid node handle (or an empty list
for the explicit-rebuild flips). Statistics are recorded on the complex when
it exposes ``_get_op_stats``.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from .errors import MeshValidityError, PreconditionError, TetComplexError
from .geometry import barycenter
from .keys import NodeKey, EdgeKey, FaceKey, TetKey, INVALID_NODE
from .logging_utils import get_logger
from .simplex_set import SimplexSet

logger = get_logger('tetcomplex.operations')

__all__ = [
    'op_split', 'op_collapse', 'op_collapse_new',
    'op_flip_32', 'op_flip_23', 'op_flip_44',
    'op_flip_23_new', 'op_flip_32_new', 'op_flip_44_new', 'op_flip_22_new',
    'op_create_faces', 'op_create_tetrahedron', 'op_create_tetrahedra', 'op_insert_tetrahedron',
    'SPLIT_OP_NAMES',
]

SPLIT_OP_NAMES = {1: 'split_edge', 2: 'split_face', 3: 'split_tet'}


# ------------------------
# Internal helpers
# ------------------------
def _get_stats(cx, name):
    getter = getattr(cx, '_get_op_stats', None)
    return getter(name) if getter else None


def _require(cx, cond, msg: str) -> None:
    """Debug-mode precondition; unchecked otherwise."""
    if cx.config.debug and not cond:
        raise PreconditionError(msg)


def _preferred_survivor(cx, a: NodeKey, b: NodeKey) -> NodeKey:
    """Endpoint whose classification must survive a collapse of (a, b)."""
    for flag in (cx.is_boundary, cx.is_interface, cx.is_crossing):
        fa, fb = flag(a), flag(b)
        if fa != fb:
            return a if fa else b
    return a


def _rebuild_label(cx, tets: Sequence[TetKey]) -> int:
    return min(cx.get_label(t) for t in tets)


def _update_around(cx, new_tets: Sequence[TetKey]) -> None:
    cx.update(cx.kernel.closure(SimplexSet(new_tets)))


# ------------------------
# Split / collapse
# ------------------------
def op_split(cx, key, position=None) -> NodeKey:
    """Split an edge, face or tetrahedron at ``position`` (default: its
    barycenter). Children inherit the label of the tetrahedron they replace."""
    name = SPLIT_OP_NAMES.get(getattr(key, 'dim', -1))
    stats = _get_stats(cx, name or 'split')
    if stats: stats.attempts += 1
    if name is None or not cx.exists(key):
        if stats: stats.fail += 1
        logger.debug('split rejected: %r is not a live edge, face or tetrahedron', key)
        return INVALID_NODE
    kernel = cx.kernel
    if position is None:
        position = barycenter([kernel.get_pos(n) for n in cx.get_nodes(key)])
    if key.dim == 3:
        label = cx.get_label(key)
        n, children = kernel.split_tetrahedron(key, position)
        for child in children:
            cx.set_label(child, label)
    else:
        labels = {t: cx.get_label(t) for t in cx.get_tets(key)}
        helper = kernel.split_edge_helper if key.dim == 1 else kernel.split_face_helper
        n, children = helper(key, position)
        for child, parent in children.items():
            cx.set_label(child, labels[parent])
    st_n = kernel.star(n)
    st_n.insert(n)
    cx.update(kernel.closure(st_n))
    if stats: stats.success += 1
    return n


def op_collapse(cx, e: EdgeKey, keep: Optional[NodeKey] = None, position=None) -> NodeKey:
    """Contract ``e`` onto ``keep``; invalid node when the kernel rejects it."""
    stats = _get_stats(cx, 'collapse')
    if stats: stats.attempts += 1
    if not isinstance(e, EdgeKey) or not cx.exists(e):
        if stats: stats.fail += 1
        logger.debug('collapse rejected: %r is not a live edge', e)
        return INVALID_NODE
    a, b = cx.get_nodes(e)
    if keep is None:
        keep = _preferred_survivor(cx, a, b)
    elif keep not in (a, b):
        raise ValueError(f'{keep!r} is not an endpoint of {e!r}')
    drop = b if keep == a else a
    kernel = cx.kernel
    n = kernel.edge_collapse_helper(e, keep, drop, position=position,
                                    check_geometry=cx.config.check_collapse_geometry,
                                    eps=cx.config.eps_volume)
    if not n.is_valid():
        if stats:
            stats.fail += 1
            stats.rejects += 1
        return n
    cx.update(kernel.closure(kernel.star(n)))
    if stats: stats.success += 1
    return n


def op_collapse_new(cx, e: EdgeKey) -> NodeKey:
    """Collapse ``e`` onto its second node by explicit remove-and-merge.

    Each face of ``e`` pairs its two other edges and each tetrahedron of
    ``e`` its two other faces; the element on the surviving side is kept.
    Not transactional: only call it where the contraction is known valid.
    """
    stats = _get_stats(cx, 'collapse_new')
    if stats: stats.attempts += 1
    if not isinstance(e, EdgeKey) or not cx.exists(e):
        if stats: stats.fail += 1
        return INVALID_NODE
    kernel = cx.kernel
    _require(cx, kernel.link_condition(e), f'collapse_new: {e!r} violates the link condition')
    n_drop, n = kernel.edge_nodes(e)
    faces = kernel.co_boundary(e)
    tets = cx.get_tets(e)

    kernel.remove(e)
    merge_edges = []
    for f in faces:
        rest = kernel.boundary(f)
        rest.sort(key=lambda x: n not in kernel.edge_nodes(x))
        merge_edges.append(rest)
        kernel.remove(f)
    merge_faces = []
    for t in tets:
        rest = kernel.boundary(t)
        rest.sort(key=lambda x: n not in kernel.face_nodes(x))
        merge_faces.append(rest)
        kernel.remove(t)

    kernel.merge(n, n_drop)
    for keep, drop in merge_edges:
        kernel.merge(keep, drop)
    for keep, drop in merge_faces:
        kernel.merge(keep, drop)

    st_n = kernel.star(n)
    dirty = kernel.closure(st_n)
    cx.update(dirty)
    for t in st_n.tetrahedra:
        if kernel.is_inverted(t):
            kernel.invert_orientation(t)
    cx.orient_faces(dirty)

    if cx.config.validate_after_collapse_new:
        ok, msgs = cx.validity_check()
        if not ok:
            if stats: stats.fail += 1
            if cx.config.debug:
                raise MeshValidityError(msgs)
            return n
    if stats: stats.success += 1
    return n


# ------------------------
# Composite flips (split + collapse)
# ------------------------
def _finish_composite(cx, stats, name: str, n1: NodeKey, n2: NodeKey, anchor: NodeKey) -> NodeKey:
    """Collapse the split node ``n2`` onto the link node ``n1``."""
    if not n2.is_valid():
        if stats: stats.fail += 1
        return INVALID_NODE
    e2 = cx.get_edge(n1, n2)
    _require(cx, e2.is_valid(), f'{name}: no edge between {n1!r} and {n2!r} after split')
    n3 = cx.collapse(e2, keep=n1) if e2.is_valid() else INVALID_NODE
    if n3.is_valid():
        _require(cx, n3 == n1, f'{name}: collapse kept {n3!r} instead of {n1!r}')
        if stats: stats.success += 1
        return n3
    if stats:
        stats.fail += 1
        stats.rejects += 1
    logger.warning('%s: collapse onto %r rejected, split node %r remains', name, n1, n2)
    if cx.config.rollback_failed_flips:
        back = cx.get_edge(n2, anchor)
        restored = cx.collapse(back, keep=anchor) if back.is_valid() else INVALID_NODE
        if restored.is_valid():
            if stats: stats.rollbacks += 1
            logger.info('%s: split node %r collapsed back onto %r', name, n2, anchor)
        else:
            logger.warning('%s: rollback of split node %r failed', name, n2)
    return INVALID_NODE


def op_flip_32(cx, e: EdgeKey) -> NodeKey:
    """Replace the 3 tetrahedra around an interior edge by 2."""
    stats = _get_stats(cx, 'flip_32')
    if stats: stats.attempts += 1
    if not isinstance(e, EdgeKey) or not cx.exists(e):
        if stats: stats.fail += 1
        return INVALID_NODE
    _require(cx, not cx.is_interface(e) and not cx.is_boundary(e),
             f'flip_32: {e!r} is on the boundary or an interface')
    lk_e = cx.link(e)
    _require(cx, lk_e.size_nodes() == 3, f'flip_32: link of {e!r} has {lk_e.size_nodes()} nodes')
    n1 = lk_e.nodes[0]
    anchor = cx.get_nodes(e)[0]
    n2 = cx.split(e)
    return _finish_composite(cx, stats, 'flip_32', n1, n2, anchor)


def op_flip_23(cx, f: FaceKey) -> NodeKey:
    """Replace the 2 tetrahedra sharing ``f`` by 3 around the apex edge.

    The 3 new tetrahedra carry the label of the tetrahedron that does not
    contain the returned node.
    """
    stats = _get_stats(cx, 'flip_23')
    if stats: stats.attempts += 1
    if not isinstance(f, FaceKey) or not cx.exists(f):
        if stats: stats.fail += 1
        return INVALID_NODE
    _require(cx, not cx.is_boundary(f), f'flip_23: {f!r} is a boundary face')
    lk_f = cx.link(f)
    _require(cx, lk_f.size_nodes() == 2, f'flip_23: link of {f!r} has {lk_f.size_nodes()} nodes')
    n1 = lk_f.nodes[0]
    anchor = cx.get_nodes(f)[0]
    n2 = cx.split(f)
    return _finish_composite(cx, stats, 'flip_23', n1, n2, anchor)


def op_flip_44(cx, f1: FaceKey, f2: FaceKey, name: str = 'flip_44') -> NodeKey:
    """Swap the edge shared by ``f1`` and ``f2`` for the diagonal through
    the apex of ``f1`` (4-4 inside the mesh, 2-2 on its boundary)."""
    stats = _get_stats(cx, name)
    if stats: stats.attempts += 1
    if not (cx.exists(f1) and cx.exists(f2)):
        if stats: stats.fail += 1
        return INVALID_NODE
    _require(cx, cx.is_interface(f1) == cx.is_interface(f2),
             f'{name}: {f1!r} and {f2!r} disagree on interface status')
    _require(cx, cx.is_boundary(f1) == cx.is_boundary(f2),
             f'{name}: {f1!r} and {f2!r} disagree on boundary status')
    e1 = cx.get_edge(f1, f2)
    if not e1.is_valid():
        if stats: stats.fail += 1
        logger.debug('%s rejected: %r and %r share no edge', name, f1, f2)
        return INVALID_NODE
    n1 = cx.get_apex(f1, e1)
    anchor = cx.get_nodes(e1)[0]
    n2 = cx.split(e1)
    return _finish_composite(cx, stats, name, n1, n2, anchor)


# ------------------------
# Explicit rebuild primitives
# ------------------------
def op_create_faces(cx, interior_edge: EdgeKey, exterior_edges: Sequence[EdgeKey]) -> List[FaceKey]:
    """Greedily group exterior edges into triangles around ``interior_edge``.

    An edge joins a group when each of its nodes already appears in the
    group, counting the nodes of the interior edge. Every group is checked
    before the first face is inserted.
    """
    groups = [[interior_edge] for _ in range(len(exterior_edges) // 3)]
    for e in exterior_edges:
        for group in groups:
            if len(group) < 3 and cx.is_neighbour(e, group):
                group.append(e)
                break
    for group in groups:
        if len(group) != 3:
            raise TetComplexError(f'could not close a face around {interior_edge!r}: {group!r}')
    return [cx.kernel.insert_face(*group) for group in groups]


def op_insert_tetrahedron(cx, f1: FaceKey, f2: FaceKey, f3: FaceKey, f4: FaceKey,
                          label: int = 0) -> TetKey:
    """Insert the tetrahedron bounded by 4 faces, positively oriented."""
    kernel = cx.kernel
    t = kernel.insert_tetrahedron(f1, f2, f3, f4, label=label)
    if kernel.is_inverted(t):
        kernel.invert_orientation(t)
    return t


def op_create_tetrahedron(cx, interior_faces: Sequence[FaceKey], exterior_faces: List[FaceKey],
                          label: int = 0) -> TetKey:
    """Assemble one tetrahedron from the last exterior face and its
    neighbours; consumed exterior faces are removed from ``exterior_faces``."""
    tet_faces = [exterior_faces.pop()]
    for f in interior_faces:
        if f not in tet_faces and cx.is_neighbour(f, tet_faces):
            tet_faces.append(f)
    for f in list(exterior_faces):
        if cx.is_neighbour(f, tet_faces):
            tet_faces.append(f)
            exterior_faces.remove(f)
    if len(tet_faces) != 4:
        raise TetComplexError(f'could not assemble a tetrahedron from {tet_faces!r}')
    return op_insert_tetrahedron(cx, *tet_faces, label=label)


def op_create_tetrahedra(cx, interior_faces: Sequence[FaceKey], exterior_faces: Sequence[FaceKey],
                         label: int = 0) -> List[TetKey]:
    remaining = list(exterior_faces)
    new_tets = []
    while remaining:
        new_tets.append(op_create_tetrahedron(cx, interior_faces, remaining, label))
    return new_tets


# ------------------------
# Explicit rebuild flips
# ------------------------
# Every check runs before the first kernel edit, so a rejected rebuild flip
# leaves the complex untouched.
def _reject(cx, stats, msg: str) -> list:
    """Count a failed attempt; raise instead in debug mode."""
    if stats: stats.fail += 1
    if cx.config.debug:
        raise PreconditionError(msg)
    logger.debug('%s', msg)
    return []


def _joined(cx, n1: NodeKey, n2: NodeKey) -> bool:
    return cx.get_edge(n1, n2).is_valid()


def op_flip_23_new(cx, f: FaceKey) -> List[TetKey]:
    stats = _get_stats(cx, 'flip_23_new')
    if stats: stats.attempts += 1
    if not isinstance(f, FaceKey) or not cx.exists(f) or cx.is_boundary(f):
        return _reject(cx, stats, f'flip_23_new: {f!r} is not an interior face')
    apices = cx.get_apices(f)
    if len(apices) != 2:
        return _reject(cx, stats, f'flip_23_new: {f!r} has {len(apices)} apices')
    if _joined(cx, apices[0], apices[1]):
        return _reject(cx, stats, f'flip_23_new: apices {apices[0]!r} and {apices[1]!r} are already joined')
    kernel = cx.kernel
    tets = cx.get_tets(f)
    label = _rebuild_label(cx, tets)

    new_edge = kernel.insert_edge(apices[0], apices[1])
    exterior_edges = cx.get_edges(tets)
    new_faces = op_create_faces(cx, new_edge, exterior_edges)
    kernel.remove(f)
    exterior_faces = cx.get_faces(tets)
    new_tets = op_create_tetrahedra(cx, new_faces, exterior_faces, label)
    for t in tets:
        kernel.remove(t)
    _update_around(cx, new_tets)
    if stats: stats.success += 1
    return new_tets


def op_flip_32_new(cx, e: EdgeKey) -> List[TetKey]:
    """Remove the interior edge ``e`` of degree 3 and its faces, then
    rebuild 2 tetrahedra on the triangle spanned by its link."""
    stats = _get_stats(cx, 'flip_32_new')
    if stats: stats.attempts += 1
    if not isinstance(e, EdgeKey) or not cx.exists(e) or cx.is_boundary(e):
        return _reject(cx, stats, f'flip_32_new: {e!r} is not an interior edge')
    _require(cx, not cx.is_interface(e), f'flip_32_new: {e!r} is on an interface')
    tets = cx.get_tets(e)
    if len(tets) != 3:
        return _reject(cx, stats, f'flip_32_new: {e!r} has {len(tets)} tetrahedra')
    face_edges = [x for x in cx.get_edges(tets) if x != e and not cx.is_neighbour(x, e)]
    if len(face_edges) != 3:
        return _reject(cx, stats, f'flip_32_new: link of {e!r} is not a triangle')
    link = cx.link(e).nodes
    if cx.get_face(*link).is_valid():
        return _reject(cx, stats, f'flip_32_new: link triangle of {e!r} is already a face')
    kernel = cx.kernel
    faces = cx.get_faces(e)
    label = _rebuild_label(cx, tets)

    kernel.remove(e)
    for face in faces:
        kernel.remove(face)
    new_face = kernel.insert_face(*face_edges)
    exterior_faces = cx.get_faces(tets)
    new_tets = op_create_tetrahedra(cx, [new_face], exterior_faces, label)
    for t in tets:
        kernel.remove(t)
    _update_around(cx, new_tets)
    if stats: stats.success += 1
    return new_tets


def _shared_edge_setup(cx, f1: FaceKey, f2: FaceKey):
    if not (isinstance(f1, FaceKey) and isinstance(f2, FaceKey) and cx.exists(f1) and cx.exists(f2)):
        return None
    shared = cx.intersection(cx.get_edges(f1), cx.get_edges(f2))
    if len(shared) != 1:
        return None
    eid = shared[0]
    nid1 = cx.difference(cx.get_nodes(eid), cx.get_nodes(f1))[0]
    nid2 = cx.difference(cx.get_nodes(eid), cx.get_nodes(f2))[0]
    return eid, nid1, nid2


def _check_diagonal(cx, stats, name: str, f1: FaceKey, f2: FaceKey, nid1: NodeKey, nid2: NodeKey):
    """Rejection list when the diagonal (nid1, nid2) cannot be inserted, else None."""
    if set(cx.get_tets(f1)) & set(cx.get_tets(f2)):
        return _reject(cx, stats, f'{name}: {f1!r} and {f2!r} bound a common tetrahedron')
    if _joined(cx, nid1, nid2):
        return _reject(cx, stats, f'{name}: {nid1!r} and {nid2!r} are already joined')
    return None


def op_flip_44_new(cx, f1: FaceKey, f2: FaceKey) -> List[TetKey]:
    stats = _get_stats(cx, 'flip_44_new')
    if stats: stats.attempts += 1
    setup = _shared_edge_setup(cx, f1, f2)
    if setup is None:
        return _reject(cx, stats, f'flip_44_new: {f1!r} and {f2!r} share no single edge')
    eid, nid1, nid2 = setup
    tets = cx.get_tets(eid)
    if len(tets) != 4 or cx.is_boundary(eid):
        return _reject(cx, stats, f'flip_44_new: {eid!r} is not an interior edge of degree 4')
    _require(cx, not cx.is_interface(eid), f'flip_44_new: {eid!r} is on an interface')
    rejected = _check_diagonal(cx, stats, 'flip_44_new', f1, f2, nid1, nid2)
    if rejected is not None:
        return rejected
    kernel = cx.kernel
    faces = cx.get_faces(eid)
    label = _rebuild_label(cx, tets)

    exterior_edges = cx.difference(cx.get_edges(tets), [eid])
    new_edge = kernel.insert_edge(nid1, nid2)
    kernel.remove(eid)
    new_faces = op_create_faces(cx, new_edge, exterior_edges)
    for face in faces:
        kernel.remove(face)
    exterior_faces = cx.get_faces(tets)
    new_tets = op_create_tetrahedra(cx, new_faces, exterior_faces, label)
    for t in tets:
        kernel.remove(t)
    _update_around(cx, new_tets)
    if stats: stats.success += 1
    return new_tets


def _pair_boundary_edges(cx, edges: Sequence[EdgeKey], diagonal: Sequence[NodeKey]):
    """Edge pairs that close a triangle with the diagonal: the two edges meet
    in a node off the diagonal and each touches the diagonal once."""
    pairs = []
    for i, e1 in enumerate(edges):
        nodes1 = cx.get_nodes(e1)
        for e2 in edges[i + 1:]:
            nodes2 = cx.get_nodes(e2)
            common = cx.intersection(nodes1, nodes2)
            if (len(common) == 1 and common[0] not in diagonal
                    and len(cx.intersection(diagonal, nodes1)) == 1
                    and len(cx.intersection(diagonal, nodes2)) == 1):
                pairs.append((e1, e2))
    return pairs


def op_flip_22_new(cx, f1: FaceKey, f2: FaceKey) -> List[TetKey]:
    """Boundary 2-2 flip by explicit rebuild.

    A new face pairs two remaining edges that meet in a node outside the
    new diagonal and each touch the diagonal once.
    """
    stats = _get_stats(cx, 'flip_22_new')
    if stats: stats.attempts += 1
    setup = _shared_edge_setup(cx, f1, f2)
    if setup is None:
        return _reject(cx, stats, f'flip_22_new: {f1!r} and {f2!r} share no single edge')
    eid, nid1, nid2 = setup
    tets = cx.get_tets(eid)
    if len(tets) != 2 or not (cx.is_boundary(f1) and cx.is_boundary(f2)):
        return _reject(cx, stats, f'flip_22_new: {f1!r} and {f2!r} are not boundary faces of a degree 2 edge')
    rejected = _check_diagonal(cx, stats, 'flip_22_new', f1, f2, nid1, nid2)
    if rejected is not None:
        return rejected
    diagonal = [nid1, nid2]
    pairs = _pair_boundary_edges(cx, cx.get_edges(tets), diagonal)
    if len(pairs) != 3:
        return _reject(cx, stats, f'flip_22_new: {len(pairs)} faces close around the diagonal, expected 3')
    kernel = cx.kernel
    faces = cx.get_faces(eid)
    label = _rebuild_label(cx, tets)

    new_edge = kernel.insert_edge(nid1, nid2)
    kernel.remove(eid)
    new_faces = [kernel.insert_face(new_edge, e1, e2) for e1, e2 in pairs]
    for face in faces:
        kernel.remove(face)
    boundary_faces = cx.get_faces(tets)
    new_tets = op_create_tetrahedra(cx, new_faces, boundary_faces, label)
    for t in tets:
        kernel.remove(t)
    _update_around(cx, new_tets)
    if stats: stats.success += 1
    return new_tets

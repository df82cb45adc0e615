"""Small reference meshes and point-cloud tetrahedralization.

Builders return ``(points, tets)`` or ``(points, tets, labels)`` arrays ready
for :class:`~tetcomplex.core.complex.TetComplex`; tetrahedra are positively
oriented.
"""
from __future__ import annotations

import numpy as np
from scipy.spatial import Delaunay

from .geometry import ensure_positive_orientation

__all__ = [
    'tetrahedralize', 'build_random_delaunay', 'single_tet', 'two_tets',
    'three_tets_around_edge', 'four_tets_around_edge',
]


def tetrahedralize(points):
    """Delaunay tetrahedralization of a 3D point cloud."""
    pts = np.ascontiguousarray(np.asarray(points, dtype=np.float64))
    tets = Delaunay(pts).simplices.astype(np.int64)
    return pts, ensure_positive_orientation(pts, tets)


def build_random_delaunay(npts=30, seed=0):
    rng = np.random.RandomState(seed)
    pts = rng.rand(npts, 3).astype(np.float64)
    return tetrahedralize(pts)


def single_tet(label=0):
    pts = np.array([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.], [0., 0., 1.]])
    tets = ensure_positive_orientation(pts, [[0, 1, 2, 3]])
    return pts, tets, np.array([label], dtype=np.int64)


def two_tets(labels=(0, 1)):
    """Two tetrahedra glued on the triangle (0, 1, 2); apexes 3 above, 4 below."""
    pts = np.array([[0., 0., 0.], [1., 0., 0.], [0., 1., 0.],
                    [0.25, 0.25, 1.], [0.25, 0.25, -1.]])
    tets = ensure_positive_orientation(pts, [[0, 1, 2, 3], [0, 1, 2, 4]])
    return pts, tets, np.asarray(labels, dtype=np.int64)


def _ring_around_edge(k, labels):
    angles = 2.0 * np.pi * np.arange(k) / k
    ring = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(k)])
    pts = np.vstack([[[0., 0., -1.], [0., 0., 1.]], ring])
    tets = [[0, 1, 2 + i, 2 + (i + 1) % k] for i in range(k)]
    labels = np.zeros(k, dtype=np.int64) if labels is None else np.asarray(labels, dtype=np.int64)
    return pts, ensure_positive_orientation(pts, tets), labels


def three_tets_around_edge(labels=None):
    """Three tetrahedra around the edge (0, 1); ring nodes 2, 3, 4."""
    return _ring_around_edge(3, labels)


def four_tets_around_edge(labels=None):
    """Four tetrahedra around the edge (0, 1); ring nodes 2, 3, 4, 5."""
    return _ring_around_edge(4, labels)

"""Geometry primitives for tetrahedra and triangles.

Sign convention: a tetrahedron (v0, v1, v2, v3) is positively oriented when
``dot(v0 - v3, cross(v1 - v3, v2 - v3)) > 0``. With that ordering the face
(v0, v1, v2) has its normal pointing away from v3.
"""
from __future__ import annotations

import numpy as np

from .constants import EPS_VOLUME

__all__ = [
    'signed_volume', 'volume', 'tets_signed_volumes', 'ensure_positive_orientation',
    'barycenter', 'triangle_area', 'normal_direction', 'find_inverted_tetrahedra',
]


def signed_volume(p0, p1, p2, p3) -> float:
    p0 = np.asarray(p0, dtype=np.float64); p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64); p3 = np.asarray(p3, dtype=np.float64)
    return float(np.dot(p0 - p3, np.cross(p1 - p3, p2 - p3))) / 6.0


def volume(p0, p1, p2, p3) -> float:
    return abs(signed_volume(p0, p1, p2, p3))


def tets_signed_volumes(points, tets):
    """Vectorized signed volume for a batch of tetrahedra.

    points: (N,3) float array
    tets:   (M,4) int array
    Returns: (M,) float64 array.
    """
    pts = np.asarray(points, dtype=np.float64)
    T = np.asarray(tets, dtype=np.int64)
    if T.size == 0:
        return np.empty((0,), dtype=float)
    p0 = pts[T[:, 0]]; p1 = pts[T[:, 1]]; p2 = pts[T[:, 2]]; p3 = pts[T[:, 3]]
    return np.einsum('ij,ij->i', p0 - p3, np.cross(p1 - p3, p2 - p3)) / 6.0


def ensure_positive_orientation(points, tets):
    """Return a copy of ``tets`` where rows with negative volume have their
    first two nodes swapped. Degenerate rows are left untouched."""
    T = np.asarray(tets, dtype=np.int64).copy()
    if T.size == 0:
        return T
    vols = tets_signed_volumes(points, T)
    flip = vols < 0.0
    if np.any(flip):
        T[flip, 0], T[flip, 1] = T[flip, 1].copy(), T[flip, 0].copy()
    return T


def barycenter(points):
    pts = np.asarray(points, dtype=np.float64)
    return pts.mean(axis=0)


def triangle_area(p0, p1, p2) -> float:
    p0 = np.asarray(p0, dtype=np.float64); p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)
    return 0.5 * float(np.linalg.norm(np.cross(p1 - p0, p2 - p0)))


def normal_direction(p0, p1, p2):
    """Unit normal of the triangle (p0, p1, p2) following its winding.

    Raises ValueError for degenerate triangles (the normal would be NaN).
    """
    p0 = np.asarray(p0, dtype=np.float64); p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)
    n = np.cross(p1 - p0, p2 - p0)
    norm = float(np.linalg.norm(n))
    if norm <= 0.0 or not np.isfinite(norm):
        raise ValueError('degenerate triangle has no normal direction')
    return n / norm


def find_inverted_tetrahedra(points, tets, eps: float = EPS_VOLUME):
    """Indices of rows of ``tets`` whose signed volume is at or below ``eps``."""
    vols = tets_signed_volumes(points, tets)
    return np.nonzero(vols <= eps)[0]

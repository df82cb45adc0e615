import numpy as np
import pytest

from tetcomplex.core import geometry


UNIT = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])


def test_signed_volume_sign_follows_node_order():
    # (origin, x, y, z) is negative under the orientation convention
    assert geometry.signed_volume(*UNIT) == pytest.approx(-1.0 / 6.0)
    assert geometry.signed_volume(UNIT[1], UNIT[0], UNIT[2], UNIT[3]) == pytest.approx(1.0 / 6.0)
    assert geometry.volume(*UNIT) == pytest.approx(1.0 / 6.0)


def test_vectorized_volumes_match_scalar():
    tets = np.array([[0, 1, 2, 3], [1, 0, 2, 3]])
    vols = geometry.tets_signed_volumes(UNIT, tets)
    assert vols.shape == (2,)
    for row, v in zip(tets, vols):
        assert v == pytest.approx(geometry.signed_volume(*UNIT[row]))
    assert geometry.tets_signed_volumes(UNIT, np.empty((0, 4), dtype=int)).shape == (0,)


def test_ensure_positive_orientation_swaps_negative_rows():
    tets = np.array([[0, 1, 2, 3], [1, 0, 2, 3]])
    fixed = geometry.ensure_positive_orientation(UNIT, tets)
    assert fixed.tolist() == [[1, 0, 2, 3], [1, 0, 2, 3]]
    # input is not modified
    assert tets[0].tolist() == [0, 1, 2, 3]
    assert geometry.find_inverted_tetrahedra(UNIT, tets).tolist() == [0]
    assert geometry.find_inverted_tetrahedra(UNIT, fixed).size == 0


def test_degenerate_tet_counts_as_inverted():
    flat = UNIT.copy()
    flat[3] = [0.25, 0.25, 0.0]
    assert geometry.find_inverted_tetrahedra(flat, np.array([[1, 0, 2, 3]])).tolist() == [0]


def test_triangle_helpers():
    assert geometry.triangle_area(UNIT[0], UNIT[1], UNIT[2]) == pytest.approx(0.5)
    n = geometry.normal_direction(UNIT[0], UNIT[1], UNIT[2])
    assert np.allclose(n, [0.0, 0.0, 1.0])
    n = geometry.normal_direction(UNIT[0], UNIT[2], UNIT[1])
    assert np.allclose(n, [0.0, 0.0, -1.0])
    with pytest.raises(ValueError):
        geometry.normal_direction(UNIT[0], UNIT[1], 2.0 * UNIT[1])
    assert np.allclose(geometry.barycenter(UNIT), [0.25, 0.25, 0.25])

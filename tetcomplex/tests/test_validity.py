import numpy as np
import pytest

from tetcomplex import TetComplex, ComplexConfig, MeshValidityError
from tetcomplex.core import builders
from tetcomplex.core.validity import check_complex_validity


def test_reference_meshes_are_valid():
    for make in (builders.single_tet, builders.two_tets, builders.three_tets_around_edge,
                 builders.four_tets_around_edge):
        cx = TetComplex(*make())
        ok, msgs = cx.validity_check()
        assert ok, f"{make.__name__}: {msgs}"


def test_dangling_co_boundary_is_reported():
    cx = TetComplex(*builders.two_tets())
    n = cx.nodes()
    f = cx.get_face(n[0], n[1], n[2])
    t = cx.get_tets(f)[0]
    # drop the tetrahedron from its face behind the kernel's back
    cx.kernel.find(f).co_boundary.pop(t)
    ok, msgs = check_complex_validity(cx.kernel)
    assert not ok
    assert any('co-boundary misses' in m for m in msgs), msgs
    assert any('boundary flag' in m for m in msgs), msgs


def test_face_shared_by_three_tets_is_reported():
    pts, tets, labels = builders.two_tets()
    pts = np.vstack([pts, [[0.3, 0.3, 2.0]]])
    # a third tetrahedron on the face (0, 1, 2) makes it non-manifold
    with pytest.raises(MeshValidityError) as info:
        TetComplex(pts, np.vstack([tets, [[0, 1, 2, 5]]]))
    assert any('3 incident tetrahedra' in m for m in info.value.messages)


def test_validation_on_build_can_be_disabled():
    pts, tets, labels = builders.two_tets()
    pts = np.vstack([pts, [[0.3, 0.3, 2.0]]])
    cfg = ComplexConfig(validate_on_build=False)
    cx = TetComplex(pts, np.vstack([tets, [[0, 1, 2, 5]]]), config=cfg)
    ok, msgs = cx.validity_check(verbose=False)
    assert not ok


def test_orientation_check_reports_inverted_tet():
    cx = TetComplex(*builders.two_tets())
    t = cx.tetrahedra()[0]
    cx.kernel.invert_orientation(t)
    ok, msgs = cx.check_orientation()
    assert not ok
    assert any('inverted' in m for m in msgs)


def test_flag_check_reports_and_keeps_stale_flags():
    cx = TetComplex(*builders.two_tets((0, 1)))
    n = cx.nodes()
    f = cx.get_face(n[0], n[1], n[2])
    cx.kernel.find(f).is_interface = False
    ok, msgs = cx.check_flags_consistent()
    assert not ok and len(msgs) == 1
    # the check does not repair what it reports
    assert cx.is_interface(f) is False
    cx.init()
    ok, msgs = cx.check_flags_consistent()
    assert ok, msgs


def test_duplicate_edge_is_reported():
    cx = TetComplex(*builders.single_tet())
    n = cx.nodes()
    e = cx.get_edge(n[0], n[1])
    extra = cx.kernel.insert_edge(n[0], n[1])
    ok, msgs = cx.validity_check(verbose=False)
    assert not ok
    assert any('duplicates' in m and repr(extra) in m and repr(e) in m for m in msgs), msgs

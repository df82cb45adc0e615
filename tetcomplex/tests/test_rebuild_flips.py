import numpy as np
import pytest

from tetcomplex import TetComplex, ComplexConfig, PreconditionError, TetComplexError, INVALID_EDGE
from tetcomplex.core import builders


def assert_healthy(cx):
    ok, msgs = cx.validity_check()
    assert ok, f"invalid complex: {msgs}"
    ok, msgs = cx.check_flags_consistent()
    assert ok, f"stale flags: {msgs}"
    ok, msgs = cx.check_orientation()
    assert ok, f"bad orientation: {msgs}"


def make_boundary_pair():
    pts = np.array([
        [0., -1., 0.],
        [0., 1., 0.],
        [-1., 0., 0.],
        [0., 0., 1.],
        [1., 0., 0.],
    ])
    return TetComplex(pts, [[0, 1, 2, 3], [0, 1, 4, 3]], labels=[2, 2])


def test_flip_23_new():
    cx = TetComplex(*builders.two_tets((1, 1)))
    n = cx.nodes()
    f = cx.get_face(n[0], n[1], n[2])
    new_tets = cx.flip_23_new(f)
    assert len(new_tets) == 3
    assert cx.size() == (5, 10, 9, 3)
    assert not cx.exists(f)
    assert all(cx.get_label(t) == 1 for t in new_tets)
    assert all(not cx.is_inverted(t) for t in new_tets)
    e = cx.get_edge(n[3], n[4])
    assert e.is_valid() and not cx.is_boundary(e)
    assert_healthy(cx)


def test_flip_23_new_takes_smallest_label():
    cx = TetComplex(*builders.two_tets((3, 1)))
    n = cx.nodes()
    new_tets = cx.flip_23_new(cx.get_face(n[0], n[1], n[2]))
    assert sorted(cx.get_label(t) for t in new_tets) == [1, 1, 1]
    assert_healthy(cx)


def test_flip_23_new_fails_on_boundary_face():
    cx = TetComplex(*builders.two_tets((0, 0)))
    n = cx.nodes()
    f = cx.get_face(n[0], n[1], n[3])
    assert cx.flip_23_new(f) == []
    assert cx.size() == (5, 9, 7, 2)
    assert cx.stats_summary()['flip_23_new']['fail'] == 1

    dbg = TetComplex(*builders.two_tets((0, 0)), config=ComplexConfig(debug=True))
    m = dbg.nodes()
    with pytest.raises(PreconditionError):
        dbg.flip_23_new(dbg.get_face(m[0], m[1], m[3]))


def test_flip_32_new():
    cx = TetComplex(*builders.three_tets_around_edge(labels=[4, 4, 4]))
    n = cx.nodes()
    new_tets = cx.flip_32_new(cx.get_edge(n[0], n[1]))
    assert len(new_tets) == 2
    assert cx.size() == (5, 9, 7, 2)
    assert cx.get_edge(n[0], n[1]) == INVALID_EDGE
    f = cx.get_face(n[2], n[3], n[4])
    assert f.is_valid() and sorted(cx.get_tets(f)) == sorted(new_tets)
    assert all(cx.get_label(t) == 4 for t in new_tets)
    assert_healthy(cx)


def test_flip_32_new_needs_degree_three():
    cx = TetComplex(*builders.four_tets_around_edge())
    n = cx.nodes()
    assert cx.flip_32_new(cx.get_edge(n[0], n[1])) == []
    assert cx.size()[3] == 4


def test_flip_44_new():
    cx = TetComplex(*builders.four_tets_around_edge())
    n = cx.nodes()
    f1 = cx.get_face(n[0], n[1], n[2])
    f2 = cx.get_face(n[0], n[1], n[4])
    new_tets = cx.flip_44_new(f1, f2)
    assert len(new_tets) == 4
    assert cx.size() == (6, 13, 12, 4)
    assert cx.get_edge(n[0], n[1]) == INVALID_EDGE
    diag = cx.get_edge(n[2], n[4])
    assert diag.is_valid() and len(cx.get_tets(diag)) == 4
    assert_healthy(cx)


def test_flip_22_new():
    cx = make_boundary_pair()
    n = cx.nodes()
    f1 = cx.get_face(n[0], n[1], n[2])
    f2 = cx.get_face(n[0], n[1], n[4])
    new_tets = cx.flip_22_new(f1, f2)
    assert len(new_tets) == 2
    assert cx.size() == (5, 9, 7, 2)
    assert cx.get_edge(n[0], n[1]) == INVALID_EDGE
    diag = cx.get_edge(n[2], n[4])
    assert diag.is_valid() and cx.is_boundary(diag) and cx.is_interface(diag)
    assert all(cx.get_label(t) == 2 for t in new_tets)
    assert_healthy(cx)


def test_flip_22_new_rejects_faces_without_shared_edge():
    cx = make_boundary_pair()
    n = cx.nodes()
    f1 = cx.get_face(n[0], n[2], n[3])
    f2 = cx.get_face(n[1], n[4], n[3])
    assert cx.flip_22_new(f1, f2) == []
    assert cx.stats_summary()['flip_22_new']['fail'] == 1


def test_create_faces_reports_unclosed_triangle():
    cx = TetComplex(*builders.two_tets((0, 0)))
    n = cx.nodes()
    e01 = cx.get_edge(n[0], n[1])
    exterior = [cx.get_edge(n[2], n[3]), cx.get_edge(n[2], n[4]), cx.get_edge(n[0], n[3])]
    with pytest.raises(TetComplexError):
        cx.create_faces(e01, exterior)
    # groups are checked before any face is inserted
    assert cx.size() == (5, 9, 7, 2)
    s = cx.stats_summary()['create_faces']
    assert s['attempts'] == 1 and s['fail'] == 1 and s['success'] == 0


def test_insert_tetrahedron_records_stats():
    cx = TetComplex(*builders.single_tet())
    n = cx.nodes()
    t = cx.tetrahedra()[0]
    faces = cx.get_faces(t)
    cx.kernel.remove(t)
    new_t = cx.insert_tetrahedron(*faces, label=3)
    assert cx.get_label(new_t) == 3 and not cx.is_inverted(new_t)
    assert set(cx.get_nodes(new_t)) == set(n)
    s = cx.stats_summary()['insert_tetrahedron']
    assert s['attempts'] == 1 and s['success'] == 1


def test_flip_23_new_rejects_face_whose_apices_are_joined():
    cx = TetComplex(*builders.three_tets_around_edge())
    n = cx.nodes()
    f = cx.get_face(n[0], n[1], n[2])
    assert sorted(cx.get_apices(f)) == [n[3], n[4]]
    before = cx.size()
    assert cx.flip_23_new(f) == []
    assert cx.size() == before
    assert cx.exists(f)
    assert cx.get_edge(n[3], n[4]).is_valid()
    assert cx.stats_summary()['flip_23_new']['fail'] == 1
    assert_healthy(cx)

    dbg = TetComplex(*builders.three_tets_around_edge(), config=ComplexConfig(debug=True))
    m = dbg.nodes()
    with pytest.raises(PreconditionError):
        dbg.flip_23_new(dbg.get_face(m[0], m[1], m[2]))
    assert dbg.size() == before


def test_flip_23_new_keeps_edges_unique_on_delaunay_mesh():
    cx = TetComplex(*builders.build_random_delaunay(25, seed=6))
    joined = [f for f in cx.faces()
              if not cx.is_boundary(f) and cx.get_edge(*cx.get_apices(f)).is_valid()]
    assert joined, "expected an interior face whose apices share an edge"
    f = joined[0]
    a, b = cx.get_apices(f)
    edge = cx.get_edge(a, b)
    before = cx.size()
    assert cx.flip_23_new(f) == []
    assert cx.size() == before
    assert cx.get_edge(a, b) == edge
    assert_healthy(cx)


def test_flip_44_new_rejects_neighbouring_faces():
    cx = TetComplex(*builders.four_tets_around_edge())
    n = cx.nodes()
    before = cx.size()
    # (0, 1, 2) and (0, 1, 3) bound the same tetrahedron
    f1 = cx.get_face(n[0], n[1], n[2])
    f2 = cx.get_face(n[0], n[1], n[3])
    assert cx.flip_44_new(f1, f2) == []
    assert cx.size() == before
    assert cx.get_edge(n[0], n[1]).is_valid()
    assert cx.stats_summary()['flip_44_new']['fail'] == 1
    assert_healthy(cx)

    dbg = TetComplex(*builders.four_tets_around_edge(), config=ComplexConfig(debug=True))
    m = dbg.nodes()
    with pytest.raises(PreconditionError):
        dbg.flip_44_new(dbg.get_face(m[0], m[1], m[2]), dbg.get_face(m[0], m[1], m[3]))
    assert dbg.size() == before
    ok, msgs = dbg.validity_check()
    assert ok, msgs


def test_flip_22_new_rejects_interior_face():
    cx = make_boundary_pair()
    n = cx.nodes()
    before = cx.size()
    shared = cx.get_face(n[0], n[1], n[3])
    assert not cx.is_boundary(shared)
    assert cx.flip_22_new(cx.get_face(n[0], n[1], n[2]), shared) == []
    assert cx.size() == before
    assert_healthy(cx)

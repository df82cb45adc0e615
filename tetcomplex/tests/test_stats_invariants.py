import math

from tetcomplex import TetComplex, format_stats_table
from tetcomplex.core import builders


def make_complex_ring():
    return TetComplex(*builders.four_tets_around_edge())


def assert_invariants(cx):
    s = cx.stats_summary()
    for op, d in s.items():
        assert d['attempts'] == d['success'] + d['fail'], f"Invariant broken for {op}: {d}"
        assert d['rejects'] <= d['fail'], f"rejects exceed failures for {op}: {d}"
        assert d['rollbacks'] <= d['rejects'], f"rollbacks exceed rejects for {op}: {d}"
        if d['attempts'] == 0:
            continue
        assert d['time_total'] >= 0
        if d['time_min'] > 0:
            assert d['time_min'] <= d['time_max'] + 1e-6
        if d['time_avg'] > 0:
            assert d['time_min'] <= d['time_avg'] + 1e-6
            assert d['time_avg'] <= d['time_max'] + 1e-6
        assert math.isclose(d['success_rate'], d['success'] / d['attempts'])


def test_stats_invariants_after_mixed_operations():
    cx = make_complex_ring()
    n = cx.nodes()
    # rejected collapse of an interior edge joining two boundary nodes
    cx.collapse(cx.get_edge(n[0], n[1]))
    new = cx.split(cx.get_edge(n[0], n[1]))
    cx.collapse(cx.get_edge(new, n[0]), keep=n[0])
    cx.flip_44(cx.get_face(n[0], n[1], n[2]), cx.get_face(n[0], n[1], n[4]))
    # boundary face: counted as a failed attempt
    cx.flip_23_new(cx.get_face(n[0], n[2], n[3]))
    assert_invariants(cx)
    s = cx.stats_summary()
    assert s['collapse']['attempts'] >= 2
    assert s['collapse']['rejects'] >= 1
    assert s['flip_44']['success'] == 1


def test_reset_stats_zeroes_counts_and_timings():
    cx = make_complex_ring()
    n = cx.nodes()
    cx.split(cx.tetrahedra()[0])
    cx.collapse(cx.get_edge(n[0], n[1]))
    assert cx.stats_summary(), "expected stats entries before reset"
    cx.reset_stats()
    for op, d in cx.stats_summary().items():
        assert d['attempts'] == 0 and d['success'] == 0 and d['fail'] == 0, f"Counts not reset for {op}: {d}"
        assert d['time_total'] == 0.0 and d['time_max'] == 0.0 and d['time_min'] == 0.0, f"Timings not reset for {op}: {d}"


def test_reset_stats_drop_ops():
    cx = make_complex_ring()
    cx.split(cx.tetrahedra()[0])
    assert 'split_tet' in cx.stats_summary()
    cx.reset_stats(drop_ops=True)
    assert cx.stats_summary() == {}
    cx.split(cx.tetrahedra()[0])
    assert list(cx.stats_summary().keys()) == ['split_tet']


def test_format_stats_table():
    cx = make_complex_ring()
    cx.split(cx.tetrahedra()[0])
    table = format_stats_table(cx.stats_summary())
    lines = table.splitlines()
    assert lines[0].split()[0] == 'op'
    assert any(line.strip().startswith('split_tet') for line in lines[2:])
    assert format_stats_table({}) == '<no stats>'

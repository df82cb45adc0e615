"""Smoke test for the flat API layer (`tetcomplex/__init__.py`)."""


def test_import_tetcomplex_smoke():
    import tetcomplex
    assert hasattr(tetcomplex, 'TetComplex')
    assert hasattr(tetcomplex, 'ComplexConfig')
    # lazy proxy should resolve
    assert callable(tetcomplex.builders.two_tets)
    for name in tetcomplex.__all__:
        assert hasattr(tetcomplex, name), f"missing public symbol {name}"

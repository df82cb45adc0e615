import logging

from tetcomplex import ComplexConfig, TetComplex, EPS_VOLUME, get_logger, configure_logging
from tetcomplex.core import builders


def test_config_defaults():
    cfg = ComplexConfig()
    assert cfg.debug is False
    assert cfg.validate_on_build is True
    assert cfg.rollback_failed_flips is False
    assert cfg.eps_volume == EPS_VOLUME


def test_config_from_dict_ignores_unknown_keys():
    cfg = ComplexConfig.from_dict({'debug': True, 'eps_volume': 1e-10, 'colour': 'red'})
    assert cfg.debug is True
    assert cfg.eps_volume == 1e-10
    assert not hasattr(cfg, 'colour')


def test_complex_keeps_its_config():
    cfg = ComplexConfig(check_collapse_geometry=False)
    cx = TetComplex(*builders.single_tet(), config=cfg)
    assert cx.config is cfg
    assert TetComplex(*builders.single_tet()).config == ComplexConfig()


def test_get_logger_namespaces_names():
    assert get_logger('kernel').name == 'tetcomplex.kernel'
    assert get_logger('tetcomplex.kernel').name == 'tetcomplex.kernel'
    assert get_logger('tetcomplex').name == 'tetcomplex'
    assert get_logger('x', level='DEBUG').level == logging.DEBUG


def test_configure_logging_isolates_package_logger():
    pkg = logging.getLogger('tetcomplex')
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    try:
        configure_logging('WARNING')
        assert pkg.level == logging.WARNING
        assert pkg.propagate is False
        assert any(not isinstance(h, logging.NullHandler) for h in pkg.handlers)
        configure_logging('bogus')
        assert pkg.level == logging.INFO
    finally:
        for h in list(pkg.handlers):
            pkg.removeHandler(h)
        for h in saved[0]:
            pkg.addHandler(h)
        pkg.setLevel(saved[1])
        pkg.propagate = saved[2]
        get_logger('x').setLevel(logging.NOTSET)

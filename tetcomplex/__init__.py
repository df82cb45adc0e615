"""Public package API for tetcomplex.

This facade provides a flat import surface on top of the internal
implementation package ``tetcomplex.core`` while deferring the scipy-backed
fixture builders until first use to keep ``import tetcomplex`` fast.

Example
-------
    from tetcomplex import TetComplex, ComplexConfig, builders

    cx = TetComplex(*builders.two_tets())
    f = cx.get_face(*cx.nodes()[:3])
    cx.flip_23(f)

The deeper modules (``tetcomplex.core.*``) are considered internal and may
change; rely on this layer for public symbols.
"""
from importlib import import_module as _imp
import logging as _logging

try:  # Python 3.8+ runtime version export
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("tetcomplex")  # populated when installed
except Exception:  # pragma: no cover - editable / unknown state
    __version__ = "0.0.0+dev"

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

# Eager light-weight submodules
_geom = _imp('tetcomplex.core.geometry')
_const = _imp('tetcomplex.core.constants')
_keys = _imp('tetcomplex.core.keys')
_sets = _imp('tetcomplex.core.simplex_set')
_errors = _imp('tetcomplex.core.errors')
_config = _imp('tetcomplex.core.config')
_stats = _imp('tetcomplex.core.stats')
_kernel = _imp('tetcomplex.core.kernel')
_flags = _imp('tetcomplex.core.flags')
_ops = _imp('tetcomplex.core.operations')
_validity = _imp('tetcomplex.core.validity')
_complex = _imp('tetcomplex.core.complex')
_log = _imp('tetcomplex.core.logging_utils')


def _lazy_module(mod_name):
    class _ModuleProxy:
        __slots__ = ('_m',)

        def _load(self):
            try:
                return self._m
            except AttributeError:
                self._m = _imp(mod_name)
                return self._m

        def __getattr__(self, item):
            if item == '_m':  # unset slot, not a module attribute
                raise AttributeError(item)
            return getattr(self._load(), item)

        def __dir__(self):
            return dir(self._load())
    return _ModuleProxy()


# Lazily loaded scipy-backed module
builders = _lazy_module('tetcomplex.core.builders')

# Main class and configuration
TetComplex = _complex.TetComplex
ComplexConfig = _config.ComplexConfig
IncidenceKernel = _kernel.IncidenceKernel
SimplexSet = _sets.SimplexSet

# Handles
NodeKey = _keys.NodeKey
EdgeKey = _keys.EdgeKey
FaceKey = _keys.FaceKey
TetKey = _keys.TetKey
INVALID_NODE = _keys.INVALID_NODE
INVALID_EDGE = _keys.INVALID_EDGE
INVALID_FACE = _keys.INVALID_FACE
INVALID_TET = _keys.INVALID_TET

# Errors
TetComplexError = _errors.TetComplexError
InvalidHandleError = _errors.InvalidHandleError
PreconditionError = _errors.PreconditionError
MeshValidityError = _errors.MeshValidityError

# Stats and logging
OpStats = _stats.OpStats
format_stats_table = _stats.format_stats_table
get_logger = _log.get_logger
configure_logging = _log.configure_logging

# Tolerances
EPS_VOLUME = _const.EPS_VOLUME
EXTERIOR_LABEL = _const.EXTERIOR_LABEL

# Namespace submodules for exploratory users
geometry = _geom
constants = _const
flags = _flags
operations = _ops
validity = _validity
stats = _stats

__all__ = [
    '__version__',
    # main types
    'TetComplex', 'ComplexConfig', 'IncidenceKernel', 'SimplexSet',
    # handles
    'NodeKey', 'EdgeKey', 'FaceKey', 'TetKey',
    'INVALID_NODE', 'INVALID_EDGE', 'INVALID_FACE', 'INVALID_TET',
    # errors
    'TetComplexError', 'InvalidHandleError', 'PreconditionError', 'MeshValidityError',
    # stats / logging
    'OpStats', 'format_stats_table', 'get_logger', 'configure_logging',
    # tolerances
    'EPS_VOLUME', 'EXTERIOR_LABEL',
    # submodules / namespaces
    'geometry', 'constants', 'flags', 'operations', 'validity', 'stats', 'builders',
]

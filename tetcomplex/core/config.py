"""Configuration objects for the tetrahedral complex and its operators."""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .constants import EPS_VOLUME


@dataclass
class ComplexConfig:
    """Behaviour switches of :class:`~tetcomplex.core.complex.TetComplex`.

    Attributes
    ----------
    debug : bool
        Check operator preconditions (edge not boundary/interface before a
        flip, link sizes, composite postconditions) and raise
        ``PreconditionError`` on violation. Off by default; violations are
        then undefined behaviour.
    validate_on_build : bool
        Run the validity checker after construction and raise
        ``MeshValidityError`` on failure.
    validate_after_collapse_new : bool
        Run the full validity sweep at the end of ``collapse_new``.
    check_collapse_geometry : bool
        Reject collapses that would leave a tetrahedron with signed volume
        at or below ``eps_volume``.
    rollback_failed_flips : bool
        When the collapse half of a composite flip is rejected, collapse the
        split node back so the mesh returns to its pre-flip topology.
    eps_volume : float
        Volume tolerance for inversion tests.
    """
    debug: bool = False
    validate_on_build: bool = True
    validate_after_collapse_new: bool = True
    check_collapse_geometry: bool = True
    rollback_failed_flips: bool = False
    eps_volume: float = EPS_VOLUME

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> 'ComplexConfig':
        """Build a config from a mapping, ignoring keys that are not fields."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in dict(values).items() if k in known})


__all__ = ['ComplexConfig']

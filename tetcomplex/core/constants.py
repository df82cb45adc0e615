"""Central numerical tolerances and label constants.

Small thresholds used by the orientation and collapse checks live here so
they can be tuned consistently instead of being scattered as literals.
"""
from __future__ import annotations

# Geometry tolerances
EPS_VOLUME: float = 1e-14         # minimum positive (absolute) signed tet volume

# Labels
EXTERIOR_LABEL: int = 0           # label of the material that surrounds the mesh

__all__ = [
    'EPS_VOLUME',
    'EXTERIOR_LABEL',
]

"""
Validator governance analytics backend.

Power tallies, opinion-dispersion weighting, validator similarity,
category/topic distributions and multi-dimensional filtering over on-chain
governance records, served through FastAPI.
"""

__all__ = [
]

"""
===============================================================================
ATTITUDE KERNEL
===============================================================================
Quaternion arithmetic for representing and propagating 3D orientation.

Submodules:
    quaternion   -- Quaternion value type (float64 / float32), algebra,
                    rotation-matrix conversion, Euler and RK4 integration
    matrix       -- Structural (row, col) matrix interface and nested-list adapter
    propagation  -- Fixed-step propagation runs configured from YAML
    constants    -- Mathematical constants and default tolerances
===============================================================================
"""

from .matrix import MatrixLike, MutableMatrixLike, NestedMatrix
from .propagation import PropagationConfig, PropagationResult, load_config, propagate
from .quaternion import Quaternion, Quaterniond, Quaternionf

__all__ = [
    'MatrixLike',
    'MutableMatrixLike',
    'NestedMatrix',
    'PropagationConfig',
    'PropagationResult',
    'Quaternion',
    'Quaterniond',
    'Quaternionf',
    'load_config',
    'propagate',
]

__version__ = '1.0.0'

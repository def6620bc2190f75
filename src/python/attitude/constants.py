"""
===============================================================================
ATTITUDE KERNEL - Constants
===============================================================================
Mathematical constants and default numerical tolerances shared by the
quaternion kernel and the propagation helpers. Angles are in radians
throughout.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI
SQRT_HALF = np.sqrt(0.5)               # 1/sqrt(2), recurring in pi-rotations

# =============================================================================
# TOLERANCES
# =============================================================================
UNIT_NORM_TOLERANCE = 1e-8             # is_unit() default
COMPARISON_TOLERANCE = 1e-12           # is_close() default (double precision)

# Integrator names accepted by the propagation helper
INTEGRATOR_EULER = "euler"
INTEGRATOR_RK4 = "rk4"

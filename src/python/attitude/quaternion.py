"""
===============================================================================
ATTITUDE KERNEL - Quaternion Value Type
===============================================================================

Generic Hamilton quaternion used to represent and propagate 3D orientation:
algebra, conversion to and from 3x3 rotation matrices, and explicit Euler /
classical Runge-Kutta integration of the attitude kinematic equation.

Convention
----------
Scalar-first component order:

    q = (a, b, c, d) = a + b*i + c*j + d*k      (a, b, c, d) == (w, x, y, z)

A unit quaternion q = (cos(theta/2), sin(theta/2) * n) is a right-handed
rotation by theta about unit axis n. q and -q describe the same rotation.

Nothing here normalizes implicitly. A quaternion holds exactly the four
numbers it was built from until normalize() is called.

Scalar type
-----------
The scalar type is the class attribute ``dtype``. Quaterniond (float64) and
Quaternionf (float32) are distinct types: mixing them in arithmetic raises
TypeError and they never compare equal. Component accessors return scalars
of the class dtype, so single-precision truncation stays visible.

Matrices
--------
Matrix conversion only uses ``m[row, col]`` reads (from_matrix) and writes
(to_matrix); see attitude.matrix for the structural interface.

References
----------
    [1] Markley & Crassidis, "Fundamentals of Spacecraft Attitude
        Determination and Control", Springer, 2014.
    [2] Shepperd, "Quaternion from Rotation Matrix", JGCD 1(3), 1978.
    [3] Kuipers, "Quaternions and Rotation Sequences", Princeton, 1999.

===============================================================================
"""

import logging
from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import COMPARISON_TOLERANCE, UNIT_NORM_TOLERANCE
from .matrix import MatrixLike, MutableMatrixLike

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (int, float, np.integer, np.floating)

# Order of the Shepperd branches, used only for log messages
_BRANCH_NAMES = ('a', 'b', 'c', 'd')


# =============================================================================
# ARRAY-LEVEL KERNELS
# =============================================================================

def _hamilton(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Hamilton product of two component arrays, p * q."""
    a1, b1, c1, d1 = p
    a2, b2, c2, d2 = q

    return np.array([
        a1 * a2 - b1 * b2 - c1 * c2 - d1 * d2,
        a1 * b2 + b1 * a2 + c1 * d2 - d1 * c2,
        a1 * c2 - b1 * d2 + c1 * a2 + d1 * b2,
        a1 * d2 + b1 * c2 - c1 * b2 + d1 * a2,
    ], dtype=p.dtype)


def _kinematics(q: np.ndarray, w: np.ndarray) -> np.ndarray:
    """
    Attitude kinematic derivative dq/dt = 0.5 * q * w.

    w is the body-frame angular velocity embedded as a pure quaternion.
    Shared by every integrator so they differ only in integration order.
    """
    return 0.5 * _hamilton(q, w)


class Quaternion:
    """
    Hamilton quaternion (a, b, c, d) over the scalar type ``dtype``.

    Parameters
    ----------
    a, b, c, d : float
        Components, stored verbatim. The defaults give the identity
        quaternion (1, 0, 0, 0).

    Examples
    --------
    >>> q = Quaternion.rotation(np.pi / 2, 0.0, 0.0, 1.0)   # 90 deg about z
    >>> r = q.to_matrix()
    >>> p = Quaternion.from_matrix(r)
    >>> w = Quaternion.pure(0.0, 0.0, 0.1)                 # 0.1 rad/s about z
    >>> q.integrate_runge_kutta4(w, 0.01)
    """

    dtype = np.float64
    _COMPARISON_TOLERANCE = COMPARISON_TOLERANCE

    def __init__(self, a: float = 1.0, b: float = 0.0, c: float = 0.0,
                 d: float = 0.0) -> None:
        self._q = np.array([a, b, c, d], dtype=self.dtype)

    @classmethod
    def _from_array(cls, q: np.ndarray) -> 'Quaternion':
        """Wrap a copy of a 4-element component array."""
        out = cls.__new__(cls)
        out._q = np.array(q, dtype=cls.dtype)
        return out

    @classmethod
    def _axis_epsilon(cls):
        """Axis norms below this are treated as zero by the rotation factory."""
        return np.finfo(cls.dtype).eps

    @staticmethod
    def _scaled_norm(v: np.ndarray):
        """
        Euclidean norm of v without overflow or underflow in the squares.

        Returns (scale, unit_norm) where scale = max|v_i| and unit_norm is
        the norm of v / scale, so |v| = scale * unit_norm. For a zero or
        non-finite v, unit_norm is returned as 0.
        """
        scale = np.max(np.abs(v))
        if scale == 0 or not np.isfinite(scale):
            return scale, v.dtype.type(0.0)
        s = v / scale
        return scale, np.sqrt(np.dot(s, s))

    def _same_type(self, other: object) -> bool:
        return type(other) is type(self)

    # =========================================================================
    # COMPONENT ACCESS
    # =========================================================================

    @property
    def a(self):
        """Scalar (real) part."""
        return self._q[0]

    @property
    def b(self):
        """i component."""
        return self._q[1]

    @property
    def c(self):
        """j component."""
        return self._q[2]

    @property
    def d(self):
        """k component."""
        return self._q[3]

    @property
    def components(self) -> np.ndarray:
        """Copy of the components as a 4-element array [a, b, c, d]."""
        return self._q.copy()

    @staticmethod
    def _check_index(index: int) -> int:
        if not isinstance(index, (int, np.integer)) or isinstance(index, bool):
            raise TypeError(
                f"quaternion components are indexed by int, got {type(index).__name__}"
            )
        if not 0 <= index < 4:
            raise IndexError(f"quaternion component index out of range: {index}")
        return int(index)

    def __getitem__(self, index: int):
        return self._q[self._check_index(index)]

    def __setitem__(self, index: int, value: float) -> None:
        self._q[self._check_index(index)] = value

    def __len__(self) -> int:
        return 4

    def __iter__(self) -> Iterator:
        return iter(self._q)

    # =========================================================================
    # FACTORIES
    # =========================================================================

    @classmethod
    def identity(cls) -> 'Quaternion':
        """The identity quaternion (1, 0, 0, 0)."""
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def pure(cls, x: float, y: float, z: float) -> 'Quaternion':
        """
        Embed a 3-vector as the pure quaternion (0, x, y, z).

        This is how angular velocities are handed to the integrators.
        """
        return cls(0.0, x, y, z)

    @classmethod
    def rotation(cls, *args: float) -> 'Quaternion':
        """
        Build the unit quaternion of a right-handed rotation.

        Two call forms are accepted:

            rotation(angle, x, y, z)   rotation of ``angle`` radians about
                                       the axis (x, y, z)
            rotation(x, y, z)          rotation vector: angle |(x, y, z)|
                                       about its own direction

        The axis does not need to be unit length and is normalized with a
        scaled norm, so very long or very short axes keep their direction.
        An all-zero axis, or a rotation vector shorter than the dtype's
        machine epsilon, yields the identity instead of a division by zero,
        so ``rotation(0, 0, 0)`` is exactly (1, 0, 0, 0).

        Raises
        ------
        TypeError
            If called with anything other than 3 or 4 arguments.
        """
        if len(args) == 4:
            angle, x, y, z = args
            return cls.from_axis_angle((x, y, z), angle)
        if len(args) == 3:
            return cls.from_rotation_vector(args)
        raise TypeError(
            f"rotation() takes (angle, x, y, z) or (x, y, z), got {len(args)} arguments"
        )

    @classmethod
    def from_axis_angle(cls, axis: Sequence[float], angle: float) -> 'Quaternion':
        """
        Rotation of ``angle`` radians about ``axis``.

            q = (cos(angle/2), sin(angle/2) * axis / |axis|)

        Parameters
        ----------
        axis : sequence of 3 floats
            Rotation axis, normalized internally.
        angle : float
            Rotation angle in radians.

        Returns
        -------
        Quaternion
            Unit quaternion, or the identity for an all-zero or non-finite
            axis. Any other axis, however short or long, fixes a direction.
        """
        axis = np.asarray(axis, dtype=cls.dtype)
        scale, unit_norm = cls._scaled_norm(axis)

        if unit_norm == 0:
            logger.debug("Degenerate rotation axis (max|axis_i| = %.3e), "
                         "returning identity", scale)
            return cls.identity()

        n = (axis / scale) / unit_norm
        half_angle = cls.dtype(angle) / 2
        sin_half = np.sin(half_angle)

        return cls(np.cos(half_angle), sin_half * n[0], sin_half * n[1],
                   sin_half * n[2])

    @classmethod
    def from_rotation_vector(cls, rot_vec: Sequence[float]) -> 'Quaternion':
        """Rotation by |rot_vec| radians about rot_vec; identity for a zero vector."""
        rot_vec = np.asarray(rot_vec, dtype=cls.dtype)
        scale, unit_norm = cls._scaled_norm(rot_vec)
        angle = scale * unit_norm if unit_norm else unit_norm

        # below one ulp of 1 the half-angle cosine rounds to 1 anyway
        if not angle >= cls._axis_epsilon():
            logger.debug("Rotation vector below resolution (|v| = %.3e), "
                         "returning identity", angle)
            return cls.identity()

        return cls.from_axis_angle(rot_vec, angle)

    # =========================================================================
    # MATRIX CONVERSION
    # =========================================================================

    @classmethod
    def from_matrix(cls, m: MatrixLike) -> 'Quaternion':
        """
        Quaternion of a 3x3 rotation matrix, by Shepperd's method.

        The naive conversion takes the scalar part from the trace and divides
        the off-diagonal terms by it, which blows up as the rotation angle
        approaches pi. Shepperd's method computes the four candidates

            trace       = M00 + M11 + M22      (~ 4a^2 - 1)
            M00-M11-M22                        (~ 4b^2 - 1)
            M11-M00-M22                        (~ 4c^2 - 1)
            M22-M00-M11                        (~ 4d^2 - 1)

        solves the component with the largest candidate through a square
        root, and backs out the other three by dividing the matching
        off-diagonal sums and differences by 4x that component, which is
        then never smaller than 1/2.

        Ties go to the earliest candidate in (a, b, c, d) order, which fixes
        the result for the pi-rotation permutation matrices, e.g.

            [[0, 1, 0], [1, 0, 0], [0, 0, -1]]  ->  (0, 1/sqrt2, 1/sqrt2, 0)

        Parameters
        ----------
        m : MatrixLike
            Proper orthonormal 3x3 matrix readable as m[row, col]. It is not
            checked for orthonormality.

        Returns
        -------
        Quaternion
            Unit quaternion (up to the accuracy of m) with the solved
            component positive.
        """
        t = cls.dtype
        m00, m01, m02 = t(m[0, 0]), t(m[0, 1]), t(m[0, 2])
        m10, m11, m12 = t(m[1, 0]), t(m[1, 1]), t(m[1, 2])
        m20, m21, m22 = t(m[2, 0]), t(m[2, 1]), t(m[2, 2])

        candidates = (
            m00 + m11 + m22,
            m00 - m11 - m22,
            m11 - m00 - m22,
            m22 - m00 - m11,
        )
        branch = max(range(4), key=lambda k: candidates[k])
        logger.debug("Shepperd branch '%s' selected (candidate = %.6e)",
                     _BRANCH_NAMES[branch], candidates[branch])

        if branch == 0:
            a = 0.5 * np.sqrt(1.0 + candidates[0])
            b = (m21 - m12) / (4.0 * a)
            c = (m02 - m20) / (4.0 * a)
            d = (m10 - m01) / (4.0 * a)
        elif branch == 1:
            b = 0.5 * np.sqrt(1.0 + candidates[1])
            a = (m21 - m12) / (4.0 * b)
            c = (m01 + m10) / (4.0 * b)
            d = (m02 + m20) / (4.0 * b)
        elif branch == 2:
            c = 0.5 * np.sqrt(1.0 + candidates[2])
            a = (m02 - m20) / (4.0 * c)
            b = (m01 + m10) / (4.0 * c)
            d = (m12 + m21) / (4.0 * c)
        else:
            d = 0.5 * np.sqrt(1.0 + candidates[3])
            a = (m10 - m01) / (4.0 * d)
            b = (m02 + m20) / (4.0 * d)
            c = (m12 + m21) / (4.0 * d)

        return cls(a, b, c, d)

    def to_matrix(self, out: Optional[MutableMatrixLike] = None):
        """
        Rotation matrix of this (presumed unit) quaternion.

            R = | 1-2(c^2+d^2)   2(bc-ad)       2(bd+ac)     |
                | 2(bc+ad)       1-2(b^2+d^2)   2(cd-ab)     |
                | 2(bd-ac)       2(cd+ab)       1-2(b^2+c^2) |

        Parameters
        ----------
        out : MutableMatrixLike, optional
            Destination written cell by cell as out[row, col] = value. Any
            type with two-index item assignment works. When omitted, a new
            3x3 numpy array of this quaternion's dtype is created.

        Returns
        -------
        The filled matrix (``out`` itself when given).
        """
        a, b, c, d = self._q

        bb, cc, dd = b * b, c * c, d * d
        bc, bd, cd = b * c, b * d, c * d
        ab, ac, ad = a * b, a * c, a * d

        rows = (
            (1.0 - 2.0 * (cc + dd), 2.0 * (bc - ad), 2.0 * (bd + ac)),
            (2.0 * (bc + ad), 1.0 - 2.0 * (bb + dd), 2.0 * (cd - ab)),
            (2.0 * (bd - ac), 2.0 * (cd + ab), 1.0 - 2.0 * (bb + cc)),
        )

        if out is None:
            out = np.empty((3, 3), dtype=self.dtype)

        for i, row in enumerate(rows):
            for j, value in enumerate(row):
                out[i, j] = value

        return out

    # =========================================================================
    # ALGEBRA
    # =========================================================================

    def conjugate(self) -> 'Quaternion':
        """(a, -b, -c, -d). Equals the inverse for unit quaternions."""
        a, b, c, d = self._q
        return type(self)(a, -b, -c, -d)

    def inverse(self) -> 'Quaternion':
        """Multiplicative inverse q* / |q|^2."""
        conj = self.conjugate()
        conj._q /= np.dot(self._q, self._q)
        return conj

    def norm(self):
        """Euclidean norm sqrt(a^2 + b^2 + c^2 + d^2)."""
        return np.sqrt(np.dot(self._q, self._q))

    def normalize(self) -> None:
        """
        Scale to unit norm in place.

        Normalizing the zero quaternion is a caller error; it produces
        NaN components under IEEE rules and is not checked.
        """
        self._q /= self.norm()

    def normalized(self) -> 'Quaternion':
        """Unit-norm copy; the receiver is left untouched."""
        q = self.copy()
        q.normalize()
        return q

    def is_unit(self, tolerance: float = UNIT_NORM_TOLERANCE) -> bool:
        """True if |q| is within ``tolerance`` of 1."""
        return bool(abs(self.norm() - 1.0) < tolerance)

    def is_close(self, other: 'Quaternion', atol: Optional[float] = None,
                 up_to_sign: bool = False) -> bool:
        """
        Component-wise comparison with absolute tolerance.

        Parameters
        ----------
        other : Quaternion
            Quaternion of the same precision.
        atol : float, optional
            Absolute tolerance; defaults to the class comparison tolerance.
        up_to_sign : bool
            Also accept -other, i.e. compare as rotations.
        """
        if not self._same_type(other):
            raise TypeError(
                f"cannot compare {type(self).__name__} with {type(other).__name__}"
            )
        if atol is None:
            atol = self._COMPARISON_TOLERANCE

        if np.allclose(self._q, other._q, rtol=0.0, atol=atol):
            return True
        return bool(up_to_sign and np.allclose(self._q, -other._q, rtol=0.0, atol=atol))

    def copy(self) -> 'Quaternion':
        """Exact, independent copy."""
        return self._from_array(self._q)

    def __copy__(self) -> 'Quaternion':
        return self.copy()

    def __deepcopy__(self, memo) -> 'Quaternion':
        return self.copy()

    # =========================================================================
    # ROTATION OPERATIONS
    # =========================================================================

    def rotate_vector(self, v: Sequence[float]) -> np.ndarray:
        """
        Rotate a 3-vector by this unit quaternion, v' = q * (0, v) * q*.

        Uses the expanded form v' = v + a*t + u x t with u = (b, c, d) and
        t = 2 u x v, which matches to_matrix() @ v.
        """
        v = np.asarray(v, dtype=self.dtype)
        u = self._q[1:4]

        t = 2.0 * np.cross(u, v)
        return v + self._q[0] * t + np.cross(u, t)

    def to_axis_angle(self) -> Tuple[np.ndarray, float]:
        """
        Axis and angle of this unit quaternion.

        Returns
        -------
        tuple of (np.ndarray, float)
            Unit axis and angle in [0, pi]. The identity has no defined
            axis; [0, 0, 1] is returned by convention.
        """
        q = self._q if self._q[0] >= 0.0 else -self._q
        vec = q[1:4]
        vec_norm = np.sqrt(np.dot(vec, vec))

        if vec_norm < self._axis_epsilon():
            return np.array([0.0, 0.0, 1.0], dtype=self.dtype), self.dtype(0.0)

        angle = 2.0 * np.arctan2(vec_norm, q[0])
        return vec / vec_norm, angle

    # =========================================================================
    # ATTITUDE PROPAGATION
    # =========================================================================

    def _rate_components(self, w: Union['Quaternion', Sequence[float]]) -> np.ndarray:
        """Component array of an angular velocity given as a pure quaternion or a 3-vector."""
        if isinstance(w, Quaternion):
            if not self._same_type(w):
                raise TypeError(
                    f"angular velocity must be a {type(self).__name__}, "
                    f"got {type(w).__name__}"
                )
            return w._q

        wx, wy, wz = w
        return np.array([0.0, wx, wy, wz], dtype=self.dtype)

    def derivative(self, w: Union['Quaternion', Sequence[float]]) -> 'Quaternion':
        """
        Kinematic derivative dq/dt = 0.5 * q * w.

        Parameters
        ----------
        w : Quaternion or sequence of 3 floats
            Body-frame angular velocity [rad/s], either as the pure
            quaternion (0, wx, wy, wz) or as (wx, wy, wz).
        """
        return self._from_array(_kinematics(self._q, self._rate_components(w)))

    def integrate_euler(self, w: Union['Quaternion', Sequence[float]], dt: float,
                        renormalize: bool = True) -> None:
        """
        Advance in place by one explicit Euler step of length dt.

            q <- q + dt * 0.5 * (q * w)

        The raw first-order step inflates the norm by about (|w| dt)^2 / 8
        per step. The result is rescaled to unit norm unless
        ``renormalize`` is False.

        Parameters
        ----------
        w : Quaternion or sequence of 3 floats
            Body-frame angular velocity [rad/s].
        dt : float
            Time step [s].
        renormalize : bool
            Rescale to unit norm after the step.
        """
        rate = self._rate_components(w)
        self._q[:] = self._q + dt * _kinematics(self._q, rate)

        if renormalize:
            self.normalize()

    def integrate_runge_kutta4(self, w: Union['Quaternion', Sequence[float]],
                               dt: float, renormalize: bool = False) -> None:
        """
        Advance in place by one classical RK4 step of length dt.

            k1 = f(q)
            k2 = f(q + dt/2 * k1)
            k3 = f(q + dt/2 * k2)
            k4 = f(q + dt * k3)
            q <- q + dt/6 * (k1 + 2 k2 + 2 k3 + k4)

        with f(q) = 0.5 * q * w, the same derivative as integrate_euler().
        Not renormalized unless ``renormalize`` is True.
        """
        rate = self._rate_components(w)
        q = self._q

        k1 = _kinematics(q, rate)
        k2 = _kinematics(q + 0.5 * dt * k1, rate)
        k3 = _kinematics(q + 0.5 * dt * k2, rate)
        k4 = _kinematics(q + dt * k3, rate)

        self._q[:] = q + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)

        if renormalize:
            self.normalize()

    # =========================================================================
    # OPERATOR OVERLOADS
    # =========================================================================

    def __add__(self, other: 'Quaternion') -> 'Quaternion':
        """Component-wise sum; used by the integrators, not a rotation operation."""
        if self._same_type(other):
            return self._from_array(self._q + other._q)
        return NotImplemented

    def __sub__(self, other: 'Quaternion') -> 'Quaternion':
        if self._same_type(other):
            return self._from_array(self._q - other._q)
        return NotImplemented

    def __neg__(self) -> 'Quaternion':
        """-q; the same rotation as q."""
        return self._from_array(-self._q)

    def __mul__(self, other: Union['Quaternion', float, int]) -> 'Quaternion':
        """
        Multiplication operator.

        - Quaternion * Quaternion -> Hamilton product (not commutative)
        - Quaternion * scalar     -> component-wise scaling
        """
        if self._same_type(other):
            return self._from_array(_hamilton(self._q, other._q))
        elif isinstance(other, _SCALAR_TYPES):
            return self._from_array(self._q * other)
        return NotImplemented

    def __rmul__(self, other: Union[float, int]) -> 'Quaternion':
        """scalar * Quaternion."""
        if isinstance(other, _SCALAR_TYPES):
            return self._from_array(other * self._q)
        return NotImplemented

    def __truediv__(self, other: Union[float, int]) -> 'Quaternion':
        if isinstance(other, _SCALAR_TYPES):
            return self._from_array(self._q / other)
        return NotImplemented

    def __imul__(self, other: Union['Quaternion', float, int]) -> 'Quaternion':
        if self._same_type(other):
            self._q[:] = _hamilton(self._q, other._q)
            return self
        elif isinstance(other, _SCALAR_TYPES):
            self._q *= other
            return self
        return NotImplemented

    def __itruediv__(self, other: Union[float, int]) -> 'Quaternion':
        if isinstance(other, _SCALAR_TYPES):
            self._q /= other
            return self
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        """Exact component equality between quaternions of the same precision."""
        if not self._same_type(other):
            return NotImplemented
        return bool(np.array_equal(self._q, other._q))

    # In-place operators mutate the components
    __hash__ = None

    def __repr__(self) -> str:
        a, b, c, d = (float(v) for v in self._q)
        return f"{type(self).__name__}(a={a!r}, b={b!r}, c={c!r}, d={d!r})"

    def __str__(self) -> str:
        a, b, c, d = (float(v) for v in self._q)
        return (f"[{a:+.6f}, {b:+.6f}, {c:+.6f}, {d:+.6f}] "
                f"(|q|={float(self.norm()):.6f})")


class Quaternionf(Quaternion):
    """Single-precision (float32) quaternion."""

    dtype = np.float32
    _COMPARISON_TOLERANCE = 1e-6


# Double precision is the default scalar type
Quaterniond = Quaternion

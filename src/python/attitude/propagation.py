"""
===============================================================================
ATTITUDE KERNEL - Fixed-Step Attitude Propagation
===============================================================================
Drives Quaternion.integrate_euler / Quaternion.integrate_runge_kutta4 over a
time interval under a constant body-frame angular velocity.

Configuration comes from a PropagationConfig dataclass, either built in code
or loaded from YAML:

    propagation:
      dt: 1.0e-5           # step [s]
      duration: 1.0        # interval [s]
      method: rk4          # euler | rk4
      renormalize: null    # null -> integrator default
      record_every: 0      # history sampling period in steps (0 = off)
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import yaml

from .constants import INTEGRATOR_EULER, INTEGRATOR_RK4, RAD2DEG
from .quaternion import Quaternion

logger = logging.getLogger(__name__)

_INTEGRATORS = {
    INTEGRATOR_EULER: 'integrate_euler',
    INTEGRATOR_RK4: 'integrate_runge_kutta4',
}


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class PropagationConfig:
    """
    Settings for a fixed-step propagation run.

    Attributes:
        dt: Integration step [s]. Must be positive.
        duration: Length of the propagated interval [s]. The number of steps
                  is round(duration / dt).
        method: Integrator name, "euler" or "rk4".
        renormalize: Forwarded to the integrator when not None; None keeps
                     the integrator's own default.
        record_every: Store the attitude every this many steps (and the
                      initial attitude). 0 disables history recording.
    """
    dt: float = 1.0e-5
    duration: float = 1.0
    method: str = INTEGRATOR_RK4
    renormalize: Optional[bool] = None
    record_every: int = 0

    def __post_init__(self) -> None:
        # PyYAML reads exponent floats without a dot ("1e-5") as strings
        self.dt = _as_float('dt', self.dt)
        self.duration = _as_float('duration', self.duration)
        self.method = str(self.method).lower()

        if not (np.isfinite(self.dt) and self.dt > 0.0):
            raise ValueError(f"dt must be positive and finite, got {self.dt}")
        if not (np.isfinite(self.duration) and self.duration >= 0.0):
            raise ValueError(
                f"duration must be non-negative and finite, got {self.duration}"
            )
        if self.method not in _INTEGRATORS:
            raise ValueError(
                f"Unknown integration method '{self.method}'. "
                f"Expected one of: {sorted(_INTEGRATORS)}"
            )
        record_every = _as_float('record_every', self.record_every)
        if (not np.isfinite(record_every) or record_every < 0
                or record_every != int(record_every)):
            raise ValueError(
                f"record_every must be a non-negative integer, got {self.record_every}"
            )
        self.record_every = int(record_every)

    @property
    def steps(self) -> int:
        """Number of integration steps covering the interval."""
        return int(round(self.duration / self.dt))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropagationConfig':
        """
        Build a config from a mapping, rejecting unknown keys.

        Missing keys take the dataclass defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown propagation settings: {sorted(unknown)}. "
                f"Valid keys: {sorted(known)}"
            )
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PropagationResult:
    """
    Output of propagate().

    Attributes:
        attitude: Attitude at the end of the interval.
        steps: Number of integration steps taken.
        history: (n, 4) array of [a, b, c, d] samples, empty (0, 4) when
                 recording is disabled.
    """
    attitude: Quaternion
    steps: int
    history: np.ndarray


def load_config(config_path: Union[str, Path]) -> PropagationConfig:
    """
    Load a PropagationConfig from a YAML file.

    The settings may sit under a top-level ``propagation`` key or form the
    whole document.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Validated PropagationConfig.
    """
    logger.info(f"Loading propagation configuration from: {config_path}")
    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Propagation configuration must be a mapping, got {type(data).__name__}"
        )
    if 'propagation' in data:
        data = data['propagation'] or {}

    config = PropagationConfig.from_dict(data)
    logger.info(f"Propagation: method={config.method}, dt={config.dt:g} s, "
                f"duration={config.duration:g} s")
    return config


def propagate(q0: Quaternion, w: Union[Quaternion, Sequence[float]],
              config: Optional[PropagationConfig] = None) -> PropagationResult:
    """
    Integrate an attitude over config.duration under a constant angular velocity.

    q0 is not modified; integration runs on a copy.

    Args:
        q0: Initial attitude.
        w: Body-frame angular velocity [rad/s], pure quaternion or 3-vector.
        config: Propagation settings. Defaults to PropagationConfig().

    Returns:
        PropagationResult with the final attitude and optional history.
    """
    if config is None:
        config = PropagationConfig()

    q = q0.copy()
    step = getattr(q, _INTEGRATORS[config.method])
    kwargs = {} if config.renormalize is None else {'renormalize': config.renormalize}
    n_steps = config.steps

    samples = []
    if config.record_every:
        samples.append(q.components)

    logger.info(f"Propagating {n_steps} {config.method} steps of dt={config.dt:g} s")

    for i in range(1, n_steps + 1):
        step(w, config.dt, **kwargs)
        if config.record_every and i % config.record_every == 0:
            samples.append(q.components)

    history = np.array(samples, dtype=q.dtype).reshape(-1, 4)

    _, angle = q.to_axis_angle()
    logger.info(f"Propagation done: final attitude {q} "
                f"(rot={float(angle) * RAD2DEG:.2f} deg), "
                f"norm drift {abs(float(q.norm()) - 1.0):.3e}")

    return PropagationResult(attitude=q, steps=n_steps, history=history)

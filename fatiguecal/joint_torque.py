"""Maximum isometric joint torque from joint-level endurance measurements.

The joint-level fatigue model relates the torque held at the maximum endurance
time (MET), ``T``, and the area under the torque curve until MET, ``A``, to the
maximum joint torque ``x``:

    f(x) = ln(T / x) + λF * A / x = 0

where ``λF`` is the motion's fatigue ratio. The root is found with
Newton-Raphson using the analytic derivative

    f'(x) = -(1 / x + λF * A / x**2)

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from functools import partial
import logging
import math
from typing import Optional

from equinox import Module, field
import jax
import jax.numpy as jnp
from jaxtyping import Array, Bool, Float, Int, Scalar

from fatiguecal._errors import ConvergenceFailure, NumericDomainError
from fatiguecal.config import SOLVER
from fatiguecal.motions import MotionCatalog


logger = logging.getLogger(__name__)


def endurance_residual(
    x: Float[Array, ""] | float,
    fatigue_ratio: float,
    torque: float,
    area: float,
) -> Float[Array, ""]:
    """Residual of the joint endurance model at candidate maximum torque `x`."""
    return jnp.log(torque / x) + fatigue_ratio * area / x


def endurance_residual_derivative(
    x: Float[Array, ""] | float,
    fatigue_ratio: float,
    torque: float,
    area: float,
) -> Float[Array, ""]:
    """Derivative of `endurance_residual` with respect to `x`."""
    return -(1.0 / x + fatigue_ratio * area / x**2)


class NewtonSolution(Module):
    """Outcome of a Newton-Raphson run.

    Attributes:
        value: The last iterate.
        num_steps: Number of updates performed.
        converged: Whether the relative step fell below the tolerance.
        finite: Whether every iterate stayed finite.
    """

    value: Float[Array, ""]
    num_steps: Int[Array, ""]
    converged: Bool[Array, ""]
    finite: Bool[Array, ""]


@partial(jax.jit, static_argnames=("max_steps",))
def _newton_iterate(
    x0: Scalar,
    rtol: Scalar,
    fatigue_ratio: Scalar,
    torque: Scalar,
    area: Scalar,
    *,
    max_steps: int,
) -> tuple[Scalar, Scalar, Scalar, Scalar]:
    def cond_fn(carry):
        _, step, converged, finite = carry
        return (step < max_steps) & ~converged & finite

    def body_fn(carry):
        x, step, _, _ = carry
        x_next = x - (
            endurance_residual(x, fatigue_ratio, torque, area)
            / endurance_residual_derivative(x, fatigue_ratio, torque, area)
        )
        converged = jnp.abs(x_next - x) / jnp.abs(x) < rtol
        finite = jnp.isfinite(x_next)
        return x_next, step + 1, converged & finite, finite

    init = (x0, jnp.array(0), jnp.array(False), jnp.isfinite(x0))
    return jax.lax.while_loop(cond_fn, body_fn, init)


class NewtonSolver(Module):
    """Newton-Raphson root finder for the joint endurance model.

    Attributes:
        init_value: Initial guess for the maximum joint torque.
        rtol: Convergence threshold on the relative step
            ``|x_{n+1} - x_n| / |x_n|``.
        max_steps: Hard cap on the number of updates.
    """

    init_value: float = 0.1
    rtol: float = 1e-9
    max_steps: int = field(default=100, static=True)

    def __check_init__(self):
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {self.max_steps}")
        if not self.rtol > 0:
            raise ValueError(f"rtol must be positive, got {self.rtol!r}")

    @classmethod
    def from_config(cls) -> NewtonSolver:
        """Solver with the settings in the `solver.yml` config."""
        newton = SOLVER.newton
        return cls(
            init_value=float(newton.init_value),
            rtol=float(newton.rtol),
            max_steps=int(newton.max_steps),
        )

    def solve(self, fatigue_ratio: float, torque: float, area: float) -> NewtonSolution:
        """Run the iteration without interpreting the outcome."""
        value, num_steps, converged, finite = _newton_iterate(
            jnp.asarray(self.init_value, dtype=float),
            jnp.asarray(self.rtol, dtype=float),
            jnp.asarray(fatigue_ratio, dtype=float),
            jnp.asarray(torque, dtype=float),
            jnp.asarray(area, dtype=float),
            max_steps=self.max_steps,
        )
        return NewtonSolution(value=value, num_steps=num_steps, converged=converged, finite=finite)


def solve_max_torque(
    fatigue_ratio: float,
    torque_at_endurance: float,
    area_under_torque_curve: float,
    *,
    solver: Optional[NewtonSolver] = None,
    motion_name: Optional[str] = None,
) -> float:
    """Maximum isometric joint torque for a motion with fatigue ratio λF.

    Arguments:
        fatigue_ratio: The motion's fatigue ratio λF.
        torque_at_endurance: Joint torque held at the maximum endurance time.
        area_under_torque_curve: Area under the joint torque curve until the
            maximum endurance time.
        solver: Newton-Raphson settings. Defaults to `NewtonSolver.from_config()`.
        motion_name: Name of the motion being calibrated, reported in errors.

    Raises:
        NumericDomainError: If the inputs are outside the model's domain, or an
            iterate became non-finite (e.g. the iteration passed through zero).
        ConvergenceFailure: If the step cap was reached without converging.
    """
    if solver is None:
        solver = NewtonSolver.from_config()

    if not (math.isfinite(torque_at_endurance) and torque_at_endurance > 0):
        raise NumericDomainError(
            "Torque at endurance must be positive and finite",
            motion_name=motion_name,
            torque_at_endurance=torque_at_endurance,
        )
    if not (math.isfinite(area_under_torque_curve) and area_under_torque_curve >= 0):
        raise NumericDomainError(
            "Area under the torque curve must be non-negative and finite",
            motion_name=motion_name,
            area_under_torque_curve=area_under_torque_curve,
        )
    if not (math.isfinite(fatigue_ratio) and fatigue_ratio > 0):
        raise NumericDomainError(
            "Fatigue ratio must be positive and finite",
            motion_name=motion_name,
            fatigue_ratio=fatigue_ratio,
        )

    sol = solver.solve(fatigue_ratio, torque_at_endurance, area_under_torque_curve)
    value = float(sol.value)
    num_steps = int(sol.num_steps)

    if not bool(sol.finite):
        raise NumericDomainError(
            f"Newton-Raphson iterate became non-finite after {num_steps} steps",
            motion_name=motion_name,
            fatigue_ratio=fatigue_ratio,
            torque_at_endurance=torque_at_endurance,
            area_under_torque_curve=area_under_torque_curve,
        )
    if not bool(sol.converged):
        raise ConvergenceFailure(num_steps, value, solver.rtol, motion_name=motion_name)

    logger.debug(f"Root value converged to {value:.6g} after {num_steps} steps")
    return value


def solve_motion_max_torque(
    catalog: MotionCatalog,
    motion_name: str,
    torque_at_endurance: float,
    area_under_torque_curve: float,
    *,
    solver: Optional[NewtonSolver] = None,
) -> float:
    """As `solve_max_torque`, taking λF from the motion called `motion_name`.

    Raises:
        UnknownMotion: If `motion_name` is not in `catalog`.
    """
    motion = catalog.lookup(motion_name)
    return solve_max_torque(
        motion.fatigue_ratio,
        torque_at_endurance,
        area_under_torque_curve,
        solver=solver,
        motion_name=motion.name,
    )

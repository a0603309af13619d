"""Tests for the Newton-Raphson joint torque solver.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

import math

import jax
import jax.numpy as jnp
import optimistix as optx
import pytest

from fatiguecal import ConvergenceFailure, NumericDomainError, UnknownMotion
from fatiguecal.joint_torque import (
    NewtonSolver,
    endurance_residual,
    endurance_residual_derivative,
    solve_max_torque,
    solve_motion_max_torque,
)


ELBOW_FLEXION_ARGS = (1.1616, 20.0, 700.0)


class TestResidual:
    def test_derivative_matches_autodiff(self):
        grad_fn = jax.grad(endurance_residual)
        for x in (0.1, 1.0, 37.5, 300.0):
            x = jnp.array(x)
            assert jnp.isclose(
                endurance_residual_derivative(x, *ELBOW_FLEXION_ARGS),
                grad_fn(x, *ELBOW_FLEXION_ARGS),
                rtol=1e-12,
            )

    def test_derivative_negative_for_positive_x(self):
        xs = jnp.linspace(0.1, 1000.0, 50)
        assert jnp.all(endurance_residual_derivative(xs, *ELBOW_FLEXION_ARGS) < 0)


class TestSolveMaxTorque:
    def test_degenerate_root_is_one(self):
        """With A=0, ln(T/x) = 0 has the root x = T."""
        assert math.isclose(solve_max_torque(1.0, 1.0, 0.0), 1.0, abs_tol=1e-6)

    def test_elbow_flexion_root(self):
        x = solve_max_torque(*ELBOW_FLEXION_ARGS)
        assert x > 0
        assert abs(float(endurance_residual(x, *ELBOW_FLEXION_ARGS))) < 1e-9

    def test_returns_python_float(self):
        assert isinstance(solve_max_torque(*ELBOW_FLEXION_ARGS), float)

    def test_idempotent(self):
        assert solve_max_torque(*ELBOW_FLEXION_ARGS) == solve_max_torque(*ELBOW_FLEXION_ARGS)

    def test_agrees_with_optimistix_newton(self):
        x = solve_max_torque(*ELBOW_FLEXION_ARGS)
        sol = optx.root_find(
            lambda y, args: endurance_residual(y, *args),
            optx.Newton(rtol=1e-12, atol=1e-12),
            jnp.array(0.1),
            args=ELBOW_FLEXION_ARGS,
        )
        assert jnp.isclose(sol.value, x, rtol=1e-8)

    def test_root_increases_with_area(self):
        lo = solve_max_torque(1.0, 10.0, 50.0)
        hi = solve_max_torque(1.0, 10.0, 100.0)
        assert hi > lo > 10.0

    def test_convergence_failure(self):
        solver = NewtonSolver(max_steps=3)
        with pytest.raises(ConvergenceFailure, match="did not converge") as excinfo:
            solve_max_torque(*ELBOW_FLEXION_ARGS, solver=solver)
        assert excinfo.value.num_steps == 3

    def test_iterate_through_zero(self):
        solver = NewtonSolver(init_value=0.0)
        with pytest.raises(NumericDomainError, match="non-finite"):
            solve_max_torque(*ELBOW_FLEXION_ARGS, solver=solver)

    def test_negative_iterate(self):
        solver = NewtonSolver(init_value=-1.0)
        with pytest.raises(NumericDomainError):
            solve_max_torque(1.0, 1.0, 0.0, solver=solver)

    @pytest.mark.parametrize(
        "args",
        [
            (1.0, 0.0, 10.0),
            (1.0, -5.0, 10.0),
            (1.0, 5.0, -10.0),
            (0.0, 5.0, 10.0),
            (1.0, float("inf"), 10.0),
        ],
    )
    def test_invalid_inputs(self, args):
        with pytest.raises(NumericDomainError):
            solve_max_torque(*args)

    def test_never_returns_sentinel(self):
        with pytest.raises(ConvergenceFailure):
            solve_max_torque(*ELBOW_FLEXION_ARGS, solver=NewtonSolver(max_steps=1))


class TestNewtonSolver:
    def test_defaults_from_config(self):
        solver = NewtonSolver.from_config()
        assert solver.init_value == 0.1
        assert solver.rtol == 1e-9
        assert solver.max_steps == 100

    def test_solution_fields(self):
        sol = NewtonSolver().solve(*ELBOW_FLEXION_ARGS)
        assert bool(sol.converged)
        assert bool(sol.finite)
        assert 0 < int(sol.num_steps) <= 100

    def test_invalid_settings(self):
        with pytest.raises(ValueError, match="max_steps"):
            NewtonSolver(max_steps=0)
        with pytest.raises(ValueError, match="rtol"):
            NewtonSolver(rtol=0.0)


class TestSolveMotionMaxTorque:
    def test_uses_catalog_fatigue_ratio(self, catalog):
        assert solve_motion_max_torque(catalog, "elbow_flexion", 20.0, 700.0) == solve_max_torque(
            *ELBOW_FLEXION_ARGS
        )

    def test_unknown_motion(self, catalog):
        with pytest.raises(UnknownMotion):
            solve_motion_max_torque(catalog, "shoulder_abduction", 20.0, 700.0)

    def test_domain_error_names_motion(self, catalog):
        with pytest.raises(NumericDomainError, match="Motion 'hand_grip'") as excinfo:
            solve_motion_max_torque(catalog, "hand_grip", 20.0, -1.0)
        assert excinfo.value.motion_name == "hand_grip"

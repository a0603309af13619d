"""Tests for calibration across motions.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

import logging

import jax.numpy as jnp
import pytest

from fatiguecal import (
    CalibrationAggregator,
    ConvergenceFailure,
    InvalidForceMvcRelation,
    NumericDomainError,
    UnknownMotion,
    UnknownMuscle,
    run_calibration,
)
from fatiguecal.aggregate import (
    MotionCalibration,
    MuscleParameter,
    calibrate_motion,
    merge_candidates,
)
from fatiguecal.calibration_data import CalibrationRecord, demo_calibration_records
from fatiguecal.joint_torque import NewtonSolver, solve_max_torque
from fatiguecal.muscle_mvc import weighted_moment_arm


def _calibration(motion_name, muscles, mvc, fatigue_ratios):
    return MotionCalibration(
        motion_name=motion_name,
        max_joint_torque=1.0,
        muscles=tuple(muscles),
        mvc=jnp.array(mvc),
        fatigue_ratios=jnp.array(fatigue_ratios),
    )


class TestMergeCandidates:
    @pytest.fixture
    def strong(self):
        return _calibration("a", ["M", "P"], [5.0, 2.0], [0.5, 0.1])

    @pytest.fixture
    def weak(self):
        return _calibration("b", ["M", "Q"], [3.0, 4.0], [0.9, 0.2])

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_higher_mvc_wins_in_either_order(self, strong, weak, order):
        calibrations = [strong, weak]
        parameters = {}
        for i in order:
            parameters = merge_candidates(parameters, calibrations[i])
        assert parameters["M"] == MuscleParameter(mvc=5.0, fatigue_coefficient=0.5)
        assert set(parameters) == {"M", "P", "Q"}

    def test_equal_mvc_keeps_existing(self):
        first = _calibration("a", ["M"], [5.0], [0.5])
        second = _calibration("b", ["M"], [5.0], [0.7])
        parameters = merge_candidates(merge_candidates({}, first), second)
        assert parameters["M"].fatigue_coefficient == 0.5

    def test_does_not_mutate_input(self, strong, weak):
        parameters = merge_candidates({}, weak)
        merged = merge_candidates(parameters, strong)
        assert parameters["M"].mvc == 3.0
        assert merged["M"].mvc == 5.0


class TestCalibrateMotion:
    def test_elbow_flexion(self, catalog, elbow_flexion):
        (record,) = demo_calibration_records()
        calibration = calibrate_motion(catalog, record)

        assert calibration.motion_name == "elbow_flexion"
        assert calibration.muscles == elbow_flexion.muscles
        assert calibration.max_joint_torque > 0
        assert calibration.mvc.shape == calibration.fatigue_ratios.shape == (4,)
        assert jnp.all(calibration.mvc > 0)
        assert jnp.all(calibration.fatigue_ratios > 0)

        forces = jnp.array([200.0, 100.0, 400.0, 100.0])
        assert jnp.all(forces < calibration.mvc)
        assert calibration.mvc[0] == calibration.max_joint_torque / weighted_moment_arm(
            elbow_flexion, record.moment_arms
        )

    def test_unknown_motion(self, catalog):
        record = CalibrationRecord(
            motion_name="wrist_flexion",
            torque_at_endurance=5.0,
            area_under_torque_curve=100.0,
            force_at_endurance={},
            area_under_force_curve={},
            moment_arms={},
        )
        with pytest.raises(UnknownMotion):
            calibrate_motion(catalog, record)

    def test_missing_force(self, catalog):
        (record,) = demo_calibration_records()
        forces = dict(record.force_at_endurance)
        del forces["BRD"]
        record = CalibrationRecord(
            motion_name=record.motion_name,
            torque_at_endurance=record.torque_at_endurance,
            area_under_torque_curve=record.area_under_torque_curve,
            force_at_endurance=forces,
            area_under_force_curve=record.area_under_force_curve,
            moment_arms=record.moment_arms,
        )
        with pytest.raises(UnknownMuscle, match="forces at endurance"):
            calibrate_motion(catalog, record)

    def test_force_above_mvc(self, catalog):
        (record,) = demo_calibration_records()
        record = CalibrationRecord(
            motion_name=record.motion_name,
            torque_at_endurance=record.torque_at_endurance,
            area_under_torque_curve=record.area_under_torque_curve,
            force_at_endurance=dict(record.force_at_endurance) | {"BRD": 1e6},
            area_under_force_curve=record.area_under_force_curve,
            moment_arms=record.moment_arms,
        )
        with pytest.raises(InvalidForceMvcRelation, match="BRD"):
            calibrate_motion(catalog, record)

    def test_convergence_failure_names_motion(self, catalog):
        (record,) = demo_calibration_records()
        with pytest.raises(ConvergenceFailure, match="Motion 'elbow_flexion'") as excinfo:
            calibrate_motion(catalog, record, solver=NewtonSolver(max_steps=2))
        assert excinfo.value.motion_name == "elbow_flexion"
        assert excinfo.value.num_steps == 2

    def test_torque_domain_error_names_motion(self, catalog):
        (record,) = demo_calibration_records()
        record = CalibrationRecord(
            motion_name=record.motion_name,
            torque_at_endurance=-1.0,
            area_under_torque_curve=record.area_under_torque_curve,
            force_at_endurance=record.force_at_endurance,
            area_under_force_curve=record.area_under_force_curve,
            moment_arms=record.moment_arms,
        )
        with pytest.raises(NumericDomainError, match="Motion 'elbow_flexion'") as excinfo:
            calibrate_motion(catalog, record)
        assert excinfo.value.motion_name == "elbow_flexion"
        assert excinfo.value.values == {"torque_at_endurance": -1.0}

    def test_logs_muscle_count(self, catalog, caplog):
        (record,) = demo_calibration_records()
        with caplog.at_level(logging.INFO, logger="fatiguecal.aggregate"):
            calibrate_motion(catalog, record)
        assert "Participating muscles (4): BICLong, BICShort, BRA, BRD" in caplog.text


class TestCalibrationAggregator:
    def test_demo_run(self, catalog):
        result = CalibrationAggregator(catalog).run(demo_calibration_records())
        assert set(result.parameters) == {"BICLong", "BICShort", "BRA", "BRD"}
        assert len(result.motions) == 1
        for param in result.parameters.values():
            assert param.mvc > 0
            assert param.fatigue_coefficient > 0

    @pytest.mark.parametrize("reverse", [False, True])
    def test_shared_muscle_keeps_highest_mvc(
        self, shared_muscle_catalog, shared_muscle_records, reverse
    ):
        records = shared_muscle_records[::-1] if reverse else shared_muscle_records
        parameters = run_calibration(shared_muscle_catalog, records)

        assert set(parameters) == {"X", "S", "Y"}

        candidates = [
            dict(calibrate_motion(shared_muscle_catalog, r).candidates())["S"]
            for r in shared_muscle_records
        ]
        best = max(candidates, key=lambda p: p.mvc)
        assert parameters["S"] == best

    def test_shared_muscle_fixture_is_informative(self, shared_muscle_catalog, shared_muscle_records):
        """The two motions give different estimates for the shared muscle."""
        flex, ext = (
            dict(calibrate_motion(shared_muscle_catalog, r).candidates())["S"]
            for r in shared_muscle_records
        )
        assert ext.mvc > flex.mvc
        assert ext.fatigue_coefficient != flex.fatigue_coefficient

    def test_unknown_motion_aborts_run(self, catalog):
        (record,) = demo_calibration_records()
        unknown = CalibrationRecord(
            motion_name="knee_extension",
            torque_at_endurance=5.0,
            area_under_torque_curve=100.0,
            force_at_endurance={},
            area_under_force_curve={},
            moment_arms={},
        )
        with pytest.raises(UnknownMotion):
            CalibrationAggregator(catalog).run([record, unknown])

    def test_calibrate_returns_parameters(self, catalog):
        aggregator = CalibrationAggregator(catalog)
        records = demo_calibration_records()
        assert aggregator.calibrate(records) == aggregator.run(records).parameters

    def test_max_torque_matches_solver(self, catalog):
        result = CalibrationAggregator(catalog).run(demo_calibration_records())
        assert result.motions[0].max_joint_torque == solve_max_torque(1.1616, 20.0, 700.0)

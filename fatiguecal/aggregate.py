"""Calibration of per-muscle parameters across several joint motions.

Each calibration record is processed independently into one candidate
`MuscleParameter` per participating muscle. Candidates are then merged by
muscle name; when a muscle takes part in more than one motion, the candidate
with the highest MVC wins, together with the fatigue coefficient computed
alongside it.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
import logging
from typing import Optional

from equinox import Module, field
from jaxtyping import Array, Float

from fatiguecal._errors import CalibrationError
from fatiguecal.calibration_data import CalibrationRecord
from fatiguecal.fatigue_ratio import compute_fatigue_ratios
from fatiguecal.joint_torque import NewtonSolver, solve_max_torque
from fatiguecal.motions import MotionCatalog
from fatiguecal.muscle_mvc import distribute_mvc


logger = logging.getLogger(__name__)


class MuscleParameter(Module):
    """Calibrated parameters of one muscle.

    Attributes:
        mvc: Maximum voluntary contraction.
        fatigue_coefficient: Fatigue-rate coefficient.
    """

    mvc: float = field(converter=float)
    fatigue_coefficient: float = field(converter=float)

    def as_list(self) -> list[float]:
        return [self.mvc, self.fatigue_coefficient]


class MotionCalibration(Module):
    """Intermediate results of calibrating a single motion.

    Attributes:
        motion_name: The calibrated motion.
        max_joint_torque: Maximum isometric joint torque.
        muscles: Participating muscles.
        mvc: MVC of each muscle, parallel to `muscles`.
        fatigue_ratios: Fatigue coefficient of each muscle, parallel to `muscles`.
    """

    motion_name: str = field(static=True)
    max_joint_torque: float
    muscles: tuple[str, ...] = field(static=True)
    mvc: Float[Array, " n_muscles"]
    fatigue_ratios: Float[Array, " n_muscles"]

    def candidates(self) -> Iterator[tuple[str, MuscleParameter]]:
        """Candidate parameters for each muscle, in motion order."""
        for i, muscle in enumerate(self.muscles):
            yield muscle, MuscleParameter(mvc=self.mvc[i], fatigue_coefficient=self.fatigue_ratios[i])


class CalibrationResult(Module):
    """Merged muscle parameters, and the per-motion results they came from.

    Attributes:
        parameters: Parameters of each distinct muscle seen in the run.
        motions: Per-motion results, in processing order.
    """

    parameters: dict[str, MuscleParameter]
    motions: tuple[MotionCalibration, ...]


def calibrate_motion(
    catalog: MotionCatalog,
    record: CalibrationRecord,
    *,
    solver: Optional[NewtonSolver] = None,
) -> MotionCalibration:
    """Compute MVC and fatigue coefficients for the muscles of one motion.

    Raises:
        UnknownMotion: If `record.motion_name` is not in `catalog`.
        UnknownMuscle: If a participating muscle is missing from one of the
            record's muscle mappings.
        ConvergenceFailure: If the joint torque could not be solved for.
        InvalidForceMvcRelation: If a muscle's force at endurance is not below
            its computed MVC.
        NumericDomainError: On zero denominators or non-finite values.
    """
    motion = catalog.lookup(record.motion_name)

    max_joint_torque = solve_max_torque(
        motion.fatigue_ratio,
        record.torque_at_endurance,
        record.area_under_torque_curve,
        solver=solver,
        motion_name=motion.name,
    )
    logger.info(f"Maximum joint torque for {motion.name}: {max_joint_torque:.6g}")

    mvc = distribute_mvc(motion, max_joint_torque, record.moment_arms)
    logger.info(f"Participating muscles ({motion.n_muscles}): {', '.join(motion.muscles)}")
    logger.info(f"Muscles' MVC: {mvc.tolist()}")

    forces = record.muscle_values("force_at_endurance", motion.muscles)
    areas = record.muscle_values("area_under_force_curve", motion.muscles)
    fatigue_ratios = compute_fatigue_ratios(
        mvc,
        forces,
        areas,
        muscles=motion.muscles,
        motion_name=motion.name,
    )
    logger.info(f"Muscles' fatigue ratios: {fatigue_ratios.tolist()}")

    return MotionCalibration(
        motion_name=motion.name,
        max_joint_torque=max_joint_torque,
        muscles=motion.muscles,
        mvc=mvc,
        fatigue_ratios=fatigue_ratios,
    )


def merge_candidates(
    parameters: Mapping[str, MuscleParameter],
    calibration: MotionCalibration,
) -> dict[str, MuscleParameter]:
    """Fold one motion's candidates into `parameters`, returning a new dict.

    A muscle's entry is replaced, as a whole, only if the new MVC is strictly
    higher than the existing one.
    """
    merged = dict(parameters)
    for muscle, candidate in calibration.candidates():
        existing = merged.get(muscle)
        if existing is None:
            merged[muscle] = candidate
        elif candidate.mvc > existing.mvc:
            logger.debug(
                f"{muscle}: MVC {candidate.mvc:.6g} from {calibration.motion_name} "
                f"replaces {existing.mvc:.6g}"
            )
            merged[muscle] = candidate
        else:
            logger.debug(
                f"{muscle}: keeping MVC {existing.mvc:.6g} over {candidate.mvc:.6g} "
                f"from {calibration.motion_name}"
            )
    return merged


class CalibrationAggregator:
    """Runs the calibration pipeline over a set of motions.

    Any failure while calibrating a motion aborts the whole run.
    """

    def __init__(self, catalog: MotionCatalog, solver: Optional[NewtonSolver] = None):
        self.catalog = catalog
        self.solver = solver if solver is not None else NewtonSolver.from_config()

    def run(self, records: Iterable[CalibrationRecord]) -> CalibrationResult:
        """Calibrate every record and merge the per-muscle results.

        Raises:
            CalibrationError: The first failure encountered, after logging it.
        """
        parameters: dict[str, MuscleParameter] = {}
        motions: list[MotionCalibration] = []

        for record in records:
            logger.info(f"Calibrating {record.motion_name}")
            try:
                calibration = calibrate_motion(self.catalog, record, solver=self.solver)
            except CalibrationError as e:
                logger.error(f"Calibration of '{record.motion_name}' failed: {e}")
                raise
            motions.append(calibration)
            parameters = merge_candidates(parameters, calibration)

        logger.info(f"Calibrated {len(parameters)} muscles from {len(motions)} motions")
        return CalibrationResult(parameters=parameters, motions=tuple(motions))

    def calibrate(self, records: Iterable[CalibrationRecord]) -> dict[str, MuscleParameter]:
        """As `run`, returning only the merged muscle parameters."""
        return self.run(records).parameters


def run_calibration(
    catalog: MotionCatalog,
    records: Iterable[CalibrationRecord],
    *,
    solver: Optional[NewtonSolver] = None,
) -> dict[str, MuscleParameter]:
    """Merged parameters of every muscle in `records`, keyed by muscle name."""
    return CalibrationAggregator(catalog, solver=solver).calibrate(records)

"""
:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0, see LICENSE for details.
"""

import importlib.metadata
import logging
import os

import jax

# Newton-Raphson tolerances are below float32 resolution.
jax.config.update("jax_enable_x64", True)

from fatiguecal._errors import (
    CalibrationError,
    ConvergenceFailure,
    InvalidForceMvcRelation,
    NumericDomainError,
    UnknownMotion,
    UnknownMuscle,
)
from fatiguecal.aggregate import (
    CalibrationAggregator,
    CalibrationResult,
    MotionCalibration,
    MuscleParameter,
    calibrate_motion,
    merge_candidates,
    run_calibration,
)
from fatiguecal.calibration_data import CalibrationRecord, demo_calibration_records
from fatiguecal.fatigue_ratio import compute_fatigue_ratios
from fatiguecal.joint_torque import NewtonSolver, solve_max_torque, solve_motion_max_torque
from fatiguecal.motions import Motion, MotionCatalog, default_motion_catalog
from fatiguecal.muscle_mvc import distribute_mvc


__version__ = importlib.metadata.version("fatiguecal")


if os.environ.get("FATIGUECAL_DEBUG", False) == "True":
    DEFAULT_LOG_LEVEL = "DEBUG"
else:
    DEFAULT_LOG_LEVEL = "INFO"

LOG_LEVEL = os.environ.get("FATIGUECAL_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


logger = logging.getLogger(__package__)
logger.addHandler(logging.NullHandler())

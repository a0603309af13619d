import logging

import pytest

from fatiguecal.calibration_data import CalibrationRecord
from fatiguecal.motions import Motion, MotionCatalog, default_motion_catalog


@pytest.fixture
def catalog():
    return default_motion_catalog()


@pytest.fixture
def elbow_flexion(catalog):
    return catalog.lookup("elbow_flexion")


@pytest.fixture
def shared_muscle_catalog():
    """Two motions that share the muscle `S`."""
    return MotionCatalog(
        motions=(
            Motion(name="flex", fatigue_ratio=1.0, muscles=("X", "S"), proportions=(1.0, 0.5)),
            Motion(name="ext", fatigue_ratio=1.0, muscles=("S", "Y"), proportions=(1.0, 1.0)),
        )
    )


@pytest.fixture
def shared_muscle_records():
    flex = CalibrationRecord(
        motion_name="flex",
        torque_at_endurance=10.0,
        area_under_torque_curve=50.0,
        force_at_endurance={"X": 100.0, "S": 50.0},
        area_under_force_curve={"X": 500.0, "S": 300.0},
        moment_arms={"X": 0.05, "S": 0.04},
    )
    ext = CalibrationRecord(
        motion_name="ext",
        torque_at_endurance=10.0,
        area_under_torque_curve=100.0,
        force_at_endurance={"S": 100.0, "Y": 100.0},
        area_under_force_curve={"S": 500.0, "Y": 500.0},
        moment_arms={"S": 0.03, "Y": 0.03},
    )
    return flex, ext


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)

"""Experimental inputs of one isometric calibration exercise.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
import math
from types import MappingProxyType
from typing import Any, Optional

from equinox import Module, field
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from fatiguecal._errors import UnknownMuscle


logger = logging.getLogger(__name__)


# Keys of the reference calibration table, by `CalibrationRecord` field
RECORD_KEYS = MappingProxyType(
    dict(
        torque_at_endurance="torque_at_met",
        area_under_torque_curve="area_curve_torque_until_met",
        force_at_endurance="all_forces_at_met",
        area_under_force_curve="all_area_curve_force_until_met",
        moment_arms="moment_arms",
    )
)

# Human-readable names of the muscle mappings, used in error messages
MAPPING_LABELS = MappingProxyType(
    dict(
        force_at_endurance="forces at endurance",
        area_under_force_curve="areas under the force curve",
        moment_arms="moment arms",
    )
)


def _frozen_muscle_mapping(mapping: Mapping[str, float]) -> Mapping[str, float]:
    return MappingProxyType({str(k): float(v) for k, v in mapping.items()})


class CalibrationRecord(Module):
    """Measurements from one isometric exercise, for one joint motion.

    Attributes:
        motion_name: Name of the motion in the motion catalog.
        torque_at_endurance: Joint torque at the maximum endurance time (MET).
        area_under_torque_curve: Area under the joint torque curve from the
            start of the exercise until MET.
        force_at_endurance: Force of each muscle at MET. May include muscles
            that do not participate in the motion.
        area_under_force_curve: Area under each muscle's force curve until MET.
        moment_arms: Moment arm of each muscle during the exercise.
    """

    motion_name: str = field(static=True)
    torque_at_endurance: float = field(converter=float)
    area_under_torque_curve: float = field(converter=float)
    force_at_endurance: Mapping[str, float] = field(converter=_frozen_muscle_mapping)
    area_under_force_curve: Mapping[str, float] = field(converter=_frozen_muscle_mapping)
    moment_arms: Mapping[str, float] = field(converter=_frozen_muscle_mapping)

    def __check_init__(self):
        for name in ("torque_at_endurance", "area_under_torque_curve"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(
                    f"Calibration record for '{self.motion_name}' has non-finite {name}: {value!r}"
                )

    def muscle_values(self, field_name: str, muscles: Sequence[str]) -> Float[Array, " n_muscles"]:
        """Project one of the muscle mappings onto the ordering of `muscles`."""
        return project_muscle_values(
            getattr(self, field_name),
            muscles,
            label=MAPPING_LABELS[field_name],
            motion_name=self.motion_name,
        )

    @classmethod
    def from_dict(cls, motion_name: str, data: Mapping[str, Any]) -> CalibrationRecord:
        """Build a record from the key layout of the reference calibration table."""
        try:
            kwargs = {attr: data[key] for attr, key in RECORD_KEYS.items()}
        except KeyError as e:
            raise ValueError(
                f"Calibration data for '{motion_name}' is missing the field {e}"
            ) from e
        return cls(motion_name=motion_name, **kwargs)


def project_muscle_values(
    mapping: Mapping[str, float],
    muscles: Sequence[str],
    *,
    label: str,
    motion_name: Optional[str] = None,
) -> Float[Array, " n_muscles"]:
    """Return the values of `mapping` for each of `muscles`, in that order.

    Raises:
        UnknownMuscle: If any of `muscles` is not a key of `mapping`.
    """
    values = []
    for muscle in muscles:
        try:
            values.append(mapping[muscle])
        except KeyError:
            raise UnknownMuscle(muscle, label, motion_name=motion_name) from None
    return jnp.asarray(np.asarray(values, dtype=np.float64))


def demo_calibration_records() -> tuple[CalibrationRecord, ...]:
    """Reference elbow flexion exercise.

    The force and area mappings also list the triceps, which do not take part
    in elbow flexion and are ignored by the calibration.
    """
    elbow_flexion = CalibrationRecord(
        motion_name="elbow_flexion",
        torque_at_endurance=20.0,
        area_under_torque_curve=700.0,
        force_at_endurance={
            "BICLong": 200.0,
            "BICShort": 100.0,
            "BRA": 400.0,
            "BRD": 100.0,
            "TRILong": 0.0,
            "TRILat": 0.0,
            "TRIMed": 0.0,
        },
        area_under_force_curve={
            "BICLong": 1800.0,
            "BICShort": 1200.0,
            "BRA": 3600.0,
            "BRD": 1200.0,
            "TRILong": 0.0,
            "TRILat": 0.0,
            "TRIMed": 0.0,
        },
        moment_arms={
            "BICLong": 0.05,
            "BICShort": 0.05,
            "BRA": 0.02,
            "BRD": 0.08,
        },
    )
    return (elbow_flexion,)

"""Exceptions raised by the calibration pipeline.

Every failure of the pipeline is reported by raising one of these, never by
returning a sentinel value.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from typing import Optional


__all__ = [
    "CalibrationError",
    "UnknownMotion",
    "UnknownMuscle",
    "ConvergenceFailure",
    "InvalidForceMvcRelation",
    "NumericDomainError",
]


class CalibrationError(Exception):
    """Base class for all calibration failures."""

    def __init__(self, message: str, *, motion_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.motion_name = motion_name

    def __str__(self) -> str:
        return self.message


class UnknownMotion(CalibrationError, KeyError):
    """The requested motion is not in the motion catalog."""

    def __init__(self, motion_name: str, available: tuple[str, ...] = ()):
        message = f"Motion '{motion_name}' does not exist in the motion catalog"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message, motion_name=motion_name)
        self.available = available


class UnknownMuscle(CalibrationError, KeyError):
    """A muscle participating in a motion is missing from a calibration mapping."""

    def __init__(
        self,
        muscle_name: str,
        mapping_label: str,
        *,
        motion_name: Optional[str] = None,
    ):
        message = f"Muscle '{muscle_name}' does not exist in the mapping of {mapping_label}"
        if motion_name is not None:
            message += f" for motion '{motion_name}'"
        super().__init__(message, motion_name=motion_name)
        self.muscle_name = muscle_name
        self.mapping_label = mapping_label


class ConvergenceFailure(CalibrationError):
    """Newton-Raphson reached its step cap without meeting the tolerance."""

    def __init__(
        self,
        num_steps: int,
        last_value: float,
        rtol: float,
        *,
        motion_name: Optional[str] = None,
    ):
        message = (
            f"Root value did not converge to rtol={rtol:g} within {num_steps} steps "
            f"(last iterate {last_value!r})"
        )
        if motion_name is not None:
            message = f"Motion '{motion_name}': {message}"
        super().__init__(message, motion_name=motion_name)
        self.num_steps = num_steps
        self.last_value = last_value
        self.rtol = rtol


class InvalidForceMvcRelation(CalibrationError):
    """A measured force at endurance is not strictly below the muscle's MVC."""

    def __init__(
        self,
        index: int,
        force: float,
        mvc: float,
        *,
        muscle_name: Optional[str] = None,
        motion_name: Optional[str] = None,
    ):
        who = f"muscle '{muscle_name}'" if muscle_name is not None else f"index {index}"
        message = (
            f"Force at endurance ({force!r}) must be strictly lower than MVC ({mvc!r}) "
            f"for {who}"
        )
        if motion_name is not None:
            message = f"Motion '{motion_name}': {message}"
        super().__init__(message, motion_name=motion_name)
        self.index = index
        self.force = force
        self.mvc = mvc
        self.muscle_name = muscle_name


class NumericDomainError(CalibrationError, ArithmeticError):
    """An intermediate value was zero where it divides, or became non-finite."""

    def __init__(self, message: str, *, motion_name: Optional[str] = None, **values: float):
        if values:
            message += " (" + ", ".join(f"{k}={v!r}" for k, v in values.items()) + ")"
        if motion_name is not None:
            message = f"Motion '{motion_name}': {message}"
        super().__init__(message, motion_name=motion_name)
        self.values = values

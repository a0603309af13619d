"""Joint motions and the muscles that participate in them.

A `Motion` records, for one isometric joint motion, its joint-level fatigue
ratio and the anatomical force proportions of the muscles that produce it.
The `MotionCatalog` is the immutable reference table of motions that a
calibration run resolves motion names against.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import logging
from typing import Any

from equinox import Module, field
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float

from fatiguecal._errors import UnknownMotion


logger = logging.getLogger(__name__)


# Reference joint motions: fatigue ratio λF, participating muscles, and each
# muscle's maximum force proportion relative to the first (reference) muscle.
DEFAULT_JOINT_MOTIONS: dict[str, dict[str, Any]] = {
    "elbow_flexion": dict(
        f_ratio=1.1616,
        muscles=("BICLong", "BICShort", "BRA", "BRD"),
        proportion=(1.0, 0.603, 2.24, 0.525),
    ),
    "elbow_extension": dict(
        f_ratio=1.0,
        muscles=("TRILong", "TRILat", "TRIMed"),
        proportion=(1.0, 0.929, 0.929),
    ),
    "hand_grip": dict(
        f_ratio=1.1227,
        muscles=("CC", "DD"),
        proportion=(1.0, 0.7),
    ),
}


def _as_float_array(x) -> Array:
    return jnp.asarray(np.asarray(x, dtype=np.float64))


class Motion(Module):
    """An isometric joint motion and its participating muscles.

    Attributes:
        name: Unique name of the motion, e.g. ``"elbow_flexion"``.
        fatigue_ratio: Joint-level fatigue ratio λF (dimensionless, positive).
        muscles: Names of the participating muscles. The first is the
            reference muscle.
        proportions: Maximum force proportion of each muscle relative to the
            reference muscle, parallel to ``muscles``.
    """

    name: str = field(static=True)
    fatigue_ratio: float
    muscles: tuple[str, ...] = field(static=True, converter=tuple)
    proportions: Float[Array, " n_muscles"] = field(converter=_as_float_array)

    def __check_init__(self):
        if len(self.muscles) == 0:
            raise ValueError(f"Motion '{self.name}' must have at least one muscle")
        if self.proportions.shape != (len(self.muscles),):
            raise ValueError(
                f"Motion '{self.name}' has {len(self.muscles)} muscles but "
                f"proportions of shape {self.proportions.shape}"
            )
        duplicates = sorted({m for m in self.muscles if self.muscles.count(m) > 1})
        if duplicates:
            raise ValueError(f"Motion '{self.name}' lists muscles more than once: {duplicates}")
        if not self.fatigue_ratio > 0:
            raise ValueError(
                f"Motion '{self.name}' must have a positive fatigue ratio, got {self.fatigue_ratio!r}"
            )
        if not bool(jnp.all(self.proportions > 0)):
            raise ValueError(f"Motion '{self.name}' must have positive proportions")

    @property
    def n_muscles(self) -> int:
        """Number of participating muscles."""
        return len(self.muscles)

    @property
    def reference_muscle(self) -> str:
        """Name of the muscle whose MVC the others are proportioned against."""
        return self.muscles[0]


class MotionCatalog(Module):
    """Immutable lookup table of joint motions, keyed by motion name.

    Attributes:
        motions: The motions in the catalog, in insertion order.
    """

    motions: tuple[Motion, ...] = field(converter=tuple)

    def __check_init__(self):
        names = [m.name for m in self.motions]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Motion catalog lists motions more than once: {duplicates}")

    @property
    def names(self) -> tuple[str, ...]:
        """Names of all motions in the catalog."""
        return tuple(m.name for m in self.motions)

    def lookup(self, name: str) -> Motion:
        """Return the motion called `name`.

        Raises:
            UnknownMotion: If no motion in the catalog has that name.
        """
        for motion in self.motions:
            if motion.name == name:
                return motion
        logger.debug(f"Motion '{name}' not in catalog {self.names}")
        raise UnknownMotion(name, self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.motions)

    def __iter__(self) -> Iterator[Motion]:
        return iter(self.motions)

    @classmethod
    def from_dict(cls, joint_motions: Mapping[str, Mapping[str, Any]]) -> MotionCatalog:
        """Build a catalog from ``{name: {"f_ratio", "muscles", "proportion"}}``."""
        motions = []
        for name, entry in joint_motions.items():
            try:
                motions.append(
                    Motion(
                        name=name,
                        fatigue_ratio=float(entry["f_ratio"]),
                        muscles=tuple(entry["muscles"]),
                        proportions=entry["proportion"],
                    )
                )
            except KeyError as e:
                raise ValueError(f"Motion '{name}' is missing the field {e}") from e
        return cls(motions=motions)


def default_motion_catalog() -> MotionCatalog:
    """The built-in catalog of reference joint motions."""
    return MotionCatalog.from_dict(DEFAULT_JOINT_MOTIONS)

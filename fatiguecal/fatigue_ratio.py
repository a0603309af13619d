"""Per-muscle fatigue-rate coefficients.

For a muscle with maximum voluntary contraction ``mvc``, holding force ``F`` at
the maximum endurance time and accumulating an area ``A`` under its force
curve until then, the fatigue ratio is

    λ = -ln(F / mvc) * mvc / A

which requires ``F < mvc``.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Optional

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, ArrayLike, Float

from fatiguecal._errors import InvalidForceMvcRelation, NumericDomainError


logger = logging.getLogger(__name__)


def compute_fatigue_ratios(
    mvc: Float[ArrayLike, " n_muscles"],
    forces: Float[ArrayLike, " n_muscles"],
    areas: Float[ArrayLike, " n_muscles"],
    *,
    muscles: Optional[Sequence[str]] = None,
    motion_name: Optional[str] = None,
) -> Float[Array, " n_muscles"]:
    """Fatigue ratio of each muscle; all inputs share one muscle ordering.

    Arguments:
        mvc: Maximum voluntary contraction of each muscle.
        forces: Force of each muscle at the maximum endurance time.
        areas: Area under each muscle's force curve until that time.
        muscles: Optional muscle names, only used to label errors.
        motion_name: Optional motion name, only used to label errors.

    Raises:
        ValueError: If the inputs do not have matching 1D shapes.
        InvalidForceMvcRelation: If any force is not strictly below its MVC.
            Reports the first offending muscle.
        NumericDomainError: If a force or area is not positive, or a ratio
            is non-finite.
    """
    mvc = jnp.asarray(mvc, dtype=float)
    forces = jnp.asarray(forces, dtype=float)
    areas = jnp.asarray(areas, dtype=float)

    if not (mvc.ndim == 1 and mvc.shape == forces.shape == areas.shape):
        raise ValueError(
            f"MVC, force and area sequences must be 1D and equally long; got shapes "
            f"{mvc.shape}, {forces.shape}, {areas.shape}"
        )
    if muscles is not None and len(muscles) != mvc.shape[0]:
        raise ValueError(f"Got {len(muscles)} muscle names for {mvc.shape[0]} values")

    def _muscle(i: int) -> Optional[str]:
        return None if muscles is None else muscles[i]

    invalid = np.flatnonzero(~np.asarray(forces < mvc))
    if invalid.size > 0:
        i = int(invalid[0])
        raise InvalidForceMvcRelation(
            i,
            float(forces[i]),
            float(mvc[i]),
            muscle_name=_muscle(i),
            motion_name=motion_name,
        )

    nonpositive = np.flatnonzero(~np.asarray((forces > 0) & (areas > 0)))
    if nonpositive.size > 0:
        i = int(nonpositive[0])
        raise NumericDomainError(
            f"Force at endurance and area under the force curve must be positive for "
            f"{_muscle(i) or f'index {i}'}",
            motion_name=motion_name,
            force=float(forces[i]),
            area=float(areas[i]),
        )

    ratios = -jnp.log(forces / mvc) * mvc / areas

    if not bool(jnp.all(jnp.isfinite(ratios))):
        raise NumericDomainError(
            "Fatigue ratios must be finite", motion_name=motion_name
        )

    return ratios

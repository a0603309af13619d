"""Distribution of a joint's maximum torque into per-muscle MVC.

With proportions ``p_i`` and moment arms ``r_i``, each muscle's maximum
voluntary contraction is ``mvc_i = p_i * mvc_ref``, and the joint torque is
``Σ mvc_i * r_i``, so that ``mvc_ref = max_joint_torque / Σ p_i * r_i``.

:copyright: Copyright 2024 by MLL <mll@mll.bio>.
:license: Apache 2.0. See LICENSE for details.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import math

import jax.numpy as jnp
from jaxtyping import Array, Float

from fatiguecal._errors import NumericDomainError
from fatiguecal.calibration_data import MAPPING_LABELS, project_muscle_values
from fatiguecal.motions import Motion


logger = logging.getLogger(__name__)


def weighted_moment_arm(motion: Motion, moment_arms: Mapping[str, float]) -> float:
    """Sum of each participating muscle's proportion times its moment arm.

    Raises:
        UnknownMuscle: If a muscle of `motion` has no entry in `moment_arms`.
    """
    arms = project_muscle_values(
        moment_arms,
        motion.muscles,
        label=MAPPING_LABELS["moment_arms"],
        motion_name=motion.name,
    )
    return float(jnp.sum(motion.proportions * arms))


def distribute_mvc(
    motion: Motion,
    max_joint_torque: float,
    moment_arms: Mapping[str, float],
) -> Float[Array, " n_muscles"]:
    """MVC of each muscle of `motion`, in the order of `motion.muscles`.

    Raises:
        UnknownMuscle: If a muscle of `motion` has no entry in `moment_arms`.
        NumericDomainError: If the weighted moment arm sum is zero or
            non-finite.
    """
    weighted_sum = weighted_moment_arm(motion, moment_arms)
    if weighted_sum == 0 or not math.isfinite(weighted_sum):
        raise NumericDomainError(
            "Weighted sum of moment arms must be non-zero and finite",
            motion_name=motion.name,
            weighted_sum=weighted_sum,
        )

    reference_mvc = max_joint_torque / weighted_sum
    logger.debug(
        f"{motion.name}: reference muscle {motion.reference_muscle} MVC = {reference_mvc:.6g}"
    )
    return reference_mvc * motion.proportions

"""Writing and displaying calibration results."""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from fatiguecal.aggregate import CalibrationResult, MuscleParameter
from fatiguecal.config import PATHS


logger = logging.getLogger(__name__)


def parameters_to_dict(parameters: Mapping[str, MuscleParameter]) -> dict[str, list[float]]:
    """`{muscle: [mvc, fatigue_coefficient]}`, sorted by muscle name."""
    return {muscle: parameters[muscle].as_list() for muscle in sorted(parameters)}


def default_results_path() -> Path:
    return Path(PATHS.output) / PATHS.results_filename


def save_muscle_parameters(
    parameters: Mapping[str, MuscleParameter],
    path: Optional[Path | str] = None,
    *,
    indent: int = 2,
) -> Path:
    """Write the muscle parameters to a JSON file and return its path.

    Defaults to the results file in the configured output directory.
    """
    path = Path(path) if path is not None else default_results_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as jsonf:
        json.dump(parameters_to_dict(parameters), jsonf, indent=indent)

    logger.info(f"Wrote parameters of {len(parameters)} muscles to `{path}`")
    return path


def print_calibration_report(result: CalibrationResult, console: Optional[Console] = None) -> None:
    """Print the per-motion intermediate values and the merged parameters."""
    console = console or Console()

    for calibration in result.motions:
        table = Table(
            title=f"{calibration.motion_name}: max joint torque {calibration.max_joint_torque:.4g}"
        )
        table.add_column("Muscle")
        table.add_column("MVC", justify="right")
        table.add_column("λF", justify="right")
        for muscle, candidate in calibration.candidates():
            table.add_row(muscle, f"{candidate.mvc:.4f}", f"{candidate.fatigue_coefficient:.6f}")
        console.print(table)

    table = Table(title="Muscle parameters")
    table.add_column("Muscle")
    table.add_column("MVC", justify="right")
    table.add_column("Fatigue coefficient", justify="right")
    for muscle, (mvc, fatigue_coefficient) in parameters_to_dict(result.parameters).items():
        table.add_row(muscle, f"{mvc:.4f}", f"{fatigue_coefficient:.6f}")
    console.print(table)

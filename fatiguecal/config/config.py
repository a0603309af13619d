import logging
import os
from collections.abc import Mapping
from importlib import resources
from pathlib import Path
from typing import Any, Optional, TypeVar

import jax.tree as jt
from ruamel.yaml import YAML

from fatiguecal.types import TreeNamespace, dict_to_namespace

logger = logging.getLogger(__name__)


CONFIG_DIR_ENV_VAR_NAME = "FATIGUECAL_CONFIG_DIR"
CONFIG_RESOURCE_ROOT = "fatiguecal.config"

# Entries of `paths.yml` that name directories relative to `base`
PATH_DIR_KEYS = ("logs", "output")


T = TypeVar("T", bound=TreeNamespace)


def deep_merge(base: Mapping[str, Any], over: Mapping[str, Any]) -> dict[str, Any]:
    """Pure 'overlay' that copies only touched branches."""
    out: dict[str, Any] = dict(base)
    for k, v in over.items():
        bv = out.get(k)
        if isinstance(v, dict) and isinstance(bv, dict):
            out[k] = deep_merge(bv, v)
        else:
            out[k] = v
    return out


def _maybe_open_yaml(resource_root: str, stem: str) -> Optional[dict]:
    """Return parsed YAML from package resources, or None if missing."""
    try:
        path = resources.files(resource_root) / f"{stem}.yml"
    except ModuleNotFoundError:
        return None

    if not path.is_file():
        return None

    yaml = YAML(typ="safe")
    with resources.as_file(path) as real_path:
        with open(real_path, "r", encoding="utf-8") as f:
            return yaml.load(f) or {}


def get_user_config_dir() -> Optional[Path]:
    """Get user config directory from environment variable, or return None."""
    env_config_dir = os.environ.get(CONFIG_DIR_ENV_VAR_NAME)
    if env_config_dir is None:
        return None
    return Path(env_config_dir).expanduser()


def load_config(name: str) -> dict[str, Any]:
    """Load a YAML config resource as a dict.

    The packaged `fatiguecal/config/{name}.yml` provides the defaults. If the
    user config directory (`$FATIGUECAL_CONFIG_DIR`) contains a file of the same
    name, its contents are deep-merged over the defaults.
    """
    data = _maybe_open_yaml(CONFIG_RESOURCE_ROOT, name)
    if data is None:
        raise ValueError(f"Config '{name}.yml' not found in {CONFIG_RESOURCE_ROOT} resources.")

    user_config_dir = get_user_config_dir()
    if user_config_dir is not None:
        upath = user_config_dir / f"{name}.yml"
        if upath.exists():
            yaml = YAML(typ="safe")
            with open(upath, "r", encoding="utf-8") as f:
                user_data = yaml.load(f) or {}
            logger.debug(f"Merging user config `{upath}` over packaged defaults")
            data = deep_merge(data, user_data)
        else:
            logger.debug(
                f"Config file {name}.yml not found in user config directory "
                f"`{user_config_dir}`. Using packaged defaults."
            )

    return data


def load_config_as_ns(name: str, to_type: type[T] = TreeNamespace) -> T:
    """Load the contents of a project YAML config file resource as a namespace."""
    return dict_to_namespace(load_config(name), to_type=to_type)


def _setup_paths(paths_ns: TreeNamespace) -> TreeNamespace:
    base_path = Path(paths_ns.base).expanduser()
    paths_ns.base = base_path
    for key in PATH_DIR_KEYS:
        if hasattr(paths_ns, key):
            setattr(paths_ns, key, base_path / getattr(paths_ns, key))
    return paths_ns


def _normalize_log_level(label: str, lvl: str | int) -> int:
    if isinstance(lvl, str):
        lvl = lvl.strip().upper()
        try:
            lvl = logging.getLevelNamesMapping()[lvl]
        except KeyError:
            raise ValueError(f"Invalid {label} specified in YAML config: {lvl!r}")
    if not isinstance(lvl, int):
        raise ValueError(f"Cannot parse log level {lvl!r}")
    return lvl


def _setup_logging(logging_ns: TreeNamespace) -> TreeNamespace:
    for label in ["file_level", "console_level", "pkg_console_levels"]:
        tree = getattr(logging_ns, label, None)
        if tree is None:
            continue
        tree_normalized = jt.map(
            lambda x: _normalize_log_level(label, x),
            tree,
        )
        setattr(logging_ns, label, tree_normalized)

    return logging_ns

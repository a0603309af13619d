from fatiguecal.types import TreeNamespace

from .config import (
    CONFIG_DIR_ENV_VAR_NAME,
    _setup_logging,
    _setup_paths,
    deep_merge,
    load_config,
    load_config_as_ns,
)

# Project-wide configuration from the YAML resources in this subpackage.
# The namespace objects are filled in place by `configure_globals`, so modules
# that imported them keep seeing the current values after a reload.
LOGGING = TreeNamespace()
PATHS = TreeNamespace()
SOLVER = TreeNamespace()


def _overwrite_namespace(dst: TreeNamespace, src: TreeNamespace) -> None:
    dst.__dict__.clear()
    dst.__dict__.update(src.__dict__)


def configure_globals() -> None:
    """(Re)load the global config namespaces, with precedence
    user config dir -> packaged defaults."""
    _overwrite_namespace(LOGGING, _setup_logging(load_config_as_ns("logging")))
    _overwrite_namespace(PATHS, _setup_paths(load_config_as_ns("paths")))
    _overwrite_namespace(SOLVER, load_config_as_ns("solver"))


configure_globals()

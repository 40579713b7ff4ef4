"""Platform abstraction layer."""

from .files import atomic_write_text, write_json
from .paths import CONFIG_DIR_NAME, global_config_path, home, is_windows
from .process import ProcessError, run

__all__ = [
    # files
    "atomic_write_text",
    "write_json",
    # paths
    "CONFIG_DIR_NAME",
    "global_config_path",
    "home",
    "is_windows",
    # process
    "ProcessError",
    "run",
]

"""
Configuration module for the approval service.

Exports the settings model, file locations and loader functions.
"""

from .loader import load_config_file, load_settings, merge_configs, strip_jsonc_comments
from .paths import (
    CONFIG_FILENAME,
    PROJECT_CONFIG_RELATIVE,
    get_project_roots,
    global_config_dir,
    global_config_path,
    global_settings_path,
    legacy_state_path,
    project_config_path,
)
from .settings import Settings

__all__ = [
    # Locations
    "CONFIG_FILENAME",
    "PROJECT_CONFIG_RELATIVE",
    "global_config_dir",
    "global_config_path",
    "global_settings_path",
    "legacy_state_path",
    "project_config_path",
    "get_project_roots",
    # Settings
    "Settings",
    # Loader functions
    "load_settings",
    "load_config_file",
    "merge_configs",
    "strip_jsonc_comments",
]

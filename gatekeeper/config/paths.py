"""Fixed on-disk locations for approval documents and host settings."""

import os
from pathlib import Path

GATEKEEPER_HOME_ENV = "GATEKEEPER_HOME"
WORKING_DIR_ENV = "WORKING_DIR"

CONFIG_DIR_NAME = ".gatekeeper"
CONFIG_FILENAME = "approvals.json"
SETTINGS_FILENAME = "settings.jsonc"
LEGACY_STATE_FILENAME = "state.json"

# Relative to each project root
PROJECT_CONFIG_RELATIVE = Path(CONFIG_DIR_NAME) / CONFIG_FILENAME
PROJECT_SETTINGS_RELATIVE = Path(CONFIG_DIR_NAME) / SETTINGS_FILENAME


def global_config_dir() -> Path:
    """Directory holding the global approval document."""
    override = os.environ.get(GATEKEEPER_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_DIR_NAME


def global_config_path() -> Path:
    return global_config_dir() / CONFIG_FILENAME


def global_settings_path() -> Path:
    return global_config_dir() / SETTINGS_FILENAME


def legacy_state_path() -> Path:
    return global_config_dir() / LEGACY_STATE_FILENAME


def project_config_path(root: str | Path) -> Path:
    return Path(root) / PROJECT_CONFIG_RELATIVE


def get_project_roots() -> list[str]:
    """
    Get the open project roots from environment or default to cwd.

    WORKING_DIR may hold several roots separated by commas.

    Returns:
        List of absolute project root paths
    """
    raw = os.environ.get(WORKING_DIR_ENV, os.getcwd())
    return [str(Path(part.strip()).resolve()) for part in raw.split(",") if part.strip()]

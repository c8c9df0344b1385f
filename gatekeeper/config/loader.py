"""Settings loading utilities."""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .paths import PROJECT_SETTINGS_RELATIVE, global_settings_path
from .settings import Settings

logger = logging.getLogger(__name__)


def strip_jsonc_comments(content: str) -> str:
    """
    Strip comments from JSONC content to convert to valid JSON.

    Handles:
    - Single-line comments: // comment
    - Multi-line comments: /* comment */

    Comment markers inside string literals are left alone, so glob patterns
    such as "src/**/*.py" survive unchanged.

    Args:
        content: JSONC content string

    Returns:
        JSON string with comments removed
    """
    result: list[str] = []
    i = 0
    length = len(content)
    in_string = False

    while i < length:
        char = content[i]

        if in_string:
            result.append(char)
            if char == "\\" and i + 1 < length:
                result.append(content[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            result.append(char)
            i += 1
        elif content.startswith("//", i):
            end = content.find("\n", i)
            i = length if end == -1 else end
        elif content.startswith("/*", i):
            end = content.find("*/", i + 2)
            # Unterminated block comment: drop the rest and let JSON parsing fail
            i = length if end == -1 else end + 2
            result.append(" ")
        else:
            result.append(char)
            i += 1

    return "".join(result)


def load_config_file(path: Path) -> dict[str, Any] | None:
    """
    Load a settings file from the given path.

    Supports both .json and .jsonc files with comment stripping.

    Args:
        path: Path to the settings file

    Returns:
        Parsed dictionary or None if the file doesn't exist or is unusable
    """
    if not path.exists():
        return None

    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix == ".jsonc":
            content = strip_jsonc_comments(content)
        data = json.loads(content)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load settings from %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Settings file %s is not an object, ignoring", path)
        return None
    return data


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Args:
        base: Base configuration
        override: Override configuration (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def load_settings(project_root: Path | str | None = None, global_path: Path | None = None) -> Settings:
    """
    Load host settings with project-over-global precedence.

    Looks for:
    1. Global: ~/.gatekeeper/settings.jsonc
    2. Project: <root>/.gatekeeper/settings.jsonc (merged over global)

    Args:
        project_root: First open project root, if any
        global_path: Override for the global settings file location

    Returns:
        Validated Settings model (defaults when nothing usable is found)
    """
    data = load_config_file(global_path or global_settings_path()) or {}

    if project_root is not None:
        project_data = load_config_file(Path(project_root) / PROJECT_SETTINGS_RELATIVE)
        if project_data:
            data = merge_configs(data, project_data)

    try:
        return Settings(**data)
    except ValidationError as e:
        logger.warning("Invalid settings, using defaults: %s", e)
        return Settings()

"""Pattern matching logic for approval rules.

Every matcher here is total: a malformed pattern (bad regex, unterminated
glob character class) never raises and never matches.
"""

import logging
import re
from functools import lru_cache

from .models import CommandMode, CommandRule, PathMode, PathRule

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def _compile_regex(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


@lru_cache(maxsize=512)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    return re.compile(translate_glob(pattern))


def translate_glob(pattern: str) -> str:
    """
    Translate a shell-style glob into a regular expression.

    Supports:
    - "*" and "**": any run of characters, including "/" (fnmatch semantics)
    - "**/": zero or more leading directories, so "src/**/*.py" matches "src/a.py"
    - "?": exactly one character
    - "[abc]", "[a-z]", "[!abc]": character classes

    Args:
        pattern: The glob pattern

    Returns:
        Regular expression source anchored at both ends

    Raises:
        ValueError: If a character class is never closed
    """
    parts: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                parts.append("(?:.*/)?")
                i += 3
                continue
            while i < n and pattern[i] == "*":
                i += 1
            parts.append(".*")
            continue
        if c == "?":
            parts.append(".")
            i += 1
            continue
        if c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            j = pattern.find("]", j)
            if j == -1:
                raise ValueError(f"Unterminated character class in glob: {pattern!r}")
            body = pattern[i + 1 : j]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            parts.append(f"[{'^' if negate else ''}{body}]")
            i = j + 1
            continue
        parts.append(re.escape(c))
        i += 1
    return "(?s:" + "".join(parts) + r")\Z"


def match_glob(pattern: str, value: str) -> bool:
    """
    Check if a value matches a glob pattern.

    Args:
        pattern: The glob pattern (see translate_glob)
        value: The value to check

    Returns:
        True if value matches pattern, False otherwise (including malformed patterns)
    """
    try:
        return _compile_glob(pattern).match(value) is not None
    except (ValueError, re.error) as e:
        logger.debug("Ignoring malformed glob %r: %s", pattern, e)
        return False


def matches_command_rule(command: str, rule: CommandRule) -> bool:
    """
    Test one command against one command rule.

    - exact: command equals the pattern
    - prefix: command starts with the pattern
    - regex: the pattern is found anywhere in the command (anchors allowed)

    Args:
        command: The (already trimmed) command text
        rule: The rule to test

    Returns:
        True only if the rule matches; any error counts as no match
    """
    try:
        if rule.mode == CommandMode.EXACT:
            return command == rule.pattern
        if rule.mode == CommandMode.PREFIX:
            return command.startswith(rule.pattern)
        if rule.mode == CommandMode.REGEX:
            return _compile_regex(rule.pattern).search(command) is not None
    except Exception as e:
        logger.debug("Command rule %r failed to match: %s", rule.pattern, e)
    return False


def matches_path_rule(path: str, rule: PathRule) -> bool:
    """
    Test one path against one path rule.

    - exact: path equals the pattern
    - prefix: path starts with the pattern
    - glob: path matches the shell-style glob

    Args:
        path: Relative or absolute path
        rule: The rule to test

    Returns:
        True only if the rule matches; any error counts as no match
    """
    try:
        if rule.mode == PathMode.EXACT:
            return path == rule.pattern
        if rule.mode == PathMode.PREFIX:
            return path.startswith(rule.pattern)
        if rule.mode == PathMode.GLOB:
            return match_glob(rule.pattern, path)
    except Exception as e:
        logger.debug("Path rule %r failed to match: %s", rule.pattern, e)
    return False

"""Compound command splitting and wrapper unwrapping.

This is not a shell parser. It only understands enough shell syntax to find
the individual commands a line will run, so that each one can be checked
against the approval rules:

- splitting on ``&&``, ``||``, ``|`` and ``;`` outside of quotes
- unwrapping wrapper commands (``sudo``, ``env``, ``xargs``, ``timeout`` ...)
  so that approval targets the command they re-invoke
"""

import os
import re
from dataclasses import dataclass, field

from ..constants import MAX_UNWRAP_DEPTH


@dataclass(frozen=True)
class WrapperSpec:
    """How to skip past a wrapper's own arguments."""

    # Flags that consume the following token as their value
    value_flags: frozenset[str] = field(default_factory=frozenset)
    # Skip leading NAME=value assignments
    skip_assignments: bool = False
    # Skip one leading duration such as "30", "1.5s" or "5m"
    skip_duration: bool = False


WRAPPERS: dict[str, WrapperSpec] = {
    "sudo": WrapperSpec(frozenset({"-u", "-g", "-p", "-C", "-D", "-h", "-r", "-t", "-U", "-R", "-T"})),
    "doas": WrapperSpec(frozenset({"-u", "-C"})),
    "env": WrapperSpec(frozenset({"-u", "--unset", "-C", "--chdir", "-S", "--split-string"}), skip_assignments=True),
    "xargs": WrapperSpec(frozenset({"-I", "-L", "-n", "-P", "-s", "-d", "-E", "-a", "--max-args", "--max-procs"})),
    "nice": WrapperSpec(frozenset({"-n", "--adjustment"})),
    "ionice": WrapperSpec(frozenset({"-c", "-n", "-p", "--class", "--classdata"})),
    "timeout": WrapperSpec(frozenset({"-s", "--signal", "-k", "--kill-after"}), skip_duration=True),
    "nohup": WrapperSpec(),
    "stdbuf": WrapperSpec(frozenset({"-i", "-o", "-e"})),
    "time": WrapperSpec(frozenset({"-f", "-o", "--format", "--output"})),
    "strace": WrapperSpec(frozenset({"-o", "-e", "-p", "-s", "-u", "-E", "-P", "-I", "-b", "-a", "-X"})),
    "ltrace": WrapperSpec(frozenset({"-o", "-e", "-p", "-s", "-u", "-n", "-a"})),
    "watch": WrapperSpec(frozenset({"-n", "--interval"})),
    "cpulimit": WrapperSpec(frozenset({"-l", "--limit", "-p", "--pid", "-e", "--exe"})),
    "caffeinate": WrapperSpec(frozenset({"-t", "-w"})),
    "unbuffer": WrapperSpec(),
    "exec": WrapperSpec(frozenset({"-a"})),
}

_ASSIGNMENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*=")
_DURATION = re.compile(r"\d+(\.\d+)?[smhd]?")


def split_compound_command(command: str) -> list[str]:
    """
    Split a compound shell command into the commands it will run.

    Splits on ``&&``, ``||``, ``|`` and ``;`` while respecting single quotes,
    double quotes and backslash escapes. Parts are trimmed and empty parts
    dropped. A lone ``&`` is not a separator.

    Args:
        command: The full command line

    Returns:
        Ordered list of sub-commands
    """
    parts: list[str] = []
    current: list[str] = []
    in_single = False
    in_double = False
    i = 0
    n = len(command)

    def flush() -> None:
        part = "".join(current).strip()
        if part:
            parts.append(part)
        current.clear()

    while i < n:
        ch = command[i]

        # Backslash escape keeps the next character verbatim
        if ch == "\\" and i + 1 < n:
            current.append(command[i : i + 2])
            i += 2
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif not in_single and not in_double:
            if command.startswith("&&", i) or command.startswith("||", i):
                flush()
                i += 2
                continue
            if ch in "|;":
                flush()
                i += 1
                continue

        current.append(ch)
        i += 1

    flush()
    return parts


def tokenize(command: str) -> list[str]:
    """
    Split a single command into whitespace-separated tokens.

    Quotes and escapes are respected but kept in the tokens, so joining the
    tokens with spaces reproduces the original words.
    """
    tokens: list[str] = []
    current: list[str] = []
    in_single = False
    in_double = False
    i = 0
    n = len(command)

    while i < n:
        ch = command[i]
        if ch == "\\" and i + 1 < n:
            current.append(command[i : i + 2])
            i += 2
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch.isspace() and not in_single and not in_double:
            if current:
                tokens.append("".join(current))
                current = []
            i += 1
            continue
        current.append(ch)
        i += 1

    if current:
        tokens.append("".join(current))
    return tokens


def wrapper_name(token: str) -> str:
    """Command name of a token, ignoring any leading directory ("/usr/bin/sudo" -> "sudo")."""
    return os.path.basename(token)


def unwrap_once(command: str) -> str | None:
    """
    Strip one wrapper command and its arguments.

    Args:
        command: A single (non-compound) command

    Returns:
        The inner command, or None if the command is not a known wrapper
        or the wrapper has no inner command
    """
    tokens = tokenize(command)
    if len(tokens) < 2:
        return None

    spec = WRAPPERS.get(wrapper_name(tokens[0]))
    if spec is None:
        return None

    i = 1
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            i += 1
            break
        if token.startswith("-") and len(token) > 1:
            # --flag=value carries its own value
            if "=" not in token and token in spec.value_flags:
                i += 2
            else:
                i += 1
            continue
        if spec.skip_assignments and _ASSIGNMENT.match(token):
            i += 1
            continue
        if spec.skip_duration and _DURATION.fullmatch(token):
            i += 1
        break

    if i >= len(tokens):
        return None
    return " ".join(tokens[i:])


def unwrap_command(command: str) -> str | None:
    """
    Fully unwrap nested wrapper commands ("sudo env FOO=1 npm test" -> "npm test").

    Nesting is followed at most MAX_UNWRAP_DEPTH levels.

    Args:
        command: A single (non-compound) command

    Returns:
        The innermost command, or None if nothing was unwrapped
    """
    current = command.strip()
    unwrapped = False
    for _ in range(MAX_UNWRAP_DEPTH):
        inner = unwrap_once(current)
        if inner is None:
            break
        current = inner
        unwrapped = True
    return current if unwrapped else None


def expand_sub_commands(sub_commands: list[str]) -> list[str]:
    """
    Replace every wrapped sub-command by the wrapper name and the inner command.

    ["cd /foo", "sudo rm -rf /tmp"] -> ["cd /foo", "sudo", "rm -rf /tmp"]

    Args:
        sub_commands: Output of split_compound_command

    Returns:
        Expanded list; non-wrapper commands pass through unchanged
    """
    expanded: list[str] = []
    for sub in sub_commands:
        inner = unwrap_command(sub)
        if inner is None:
            expanded.append(sub)
            continue
        expanded.append(tokenize(sub)[0])
        expanded.append(inner)
    return expanded

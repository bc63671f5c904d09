"""Decode RUN lines recorded with positional build arguments.

The legacy builder records ``RUN`` steps that saw build args as::

    |2 PORT=8080 DEBUG=true /bin/sh -c echo hi

where the leading count is the number of ``NAME=value`` assignments placed in
front of the shell invocation.
"""

from __future__ import annotations

import sys
from typing import Optional

from .writer import ScriptWriter

SHELL_FLAG = " -c "


class ArgLineDecodeError(RuntimeError):
    """Raised when a build-argument line does not follow the expected encoding."""


def split_arg_count(line: str) -> Optional[tuple[int, str]]:
    """Split ``|N rest`` into ``(N, rest)``; None when nothing follows the count."""
    i = 1
    while i < len(line) and line[i].isdigit():
        i += 1
    if i >= len(line):
        return None
    digits = line[1:i]
    if not digits:
        raise ArgLineDecodeError(f"Error processing command line with arguments (no count): {line}")
    return int(digits), line[i:].lstrip()


def decode_arg_line(value: str, count: int, shell_path: str) -> tuple[str, str]:
    """Return ``(command, env_prefix)`` for the text following ``|N``."""
    pos = 0
    for _ in range(count):
        index = value.find("=", pos)
        if index < 0:
            raise ArgLineDecodeError("Error processing command line with arguments.")
        pos = index + 1

    flag = value.find(SHELL_FLAG, pos)
    if flag < 0:
        raise ArgLineDecodeError(
            "Error processing command line with arguments (-c parameter not found)"
        )
    shell = value[:flag].rfind(shell_path)
    if shell < 0:
        raise ArgLineDecodeError(
            "Error processing command line with arguments (shell not found)"
        )
    return value[flag + len(SHELL_FLAG):], value[:shell]


def process_with_args(
    writer: ScriptWriter, line: str, shell_path: str, *, verbose: bool = False
) -> None:
    parsed = split_arg_count(line)
    if parsed is None:
        print(f"Error processing command line (skipped): {line}", file=sys.stderr)
        return
    count, value = parsed
    command, env_prefix = decode_arg_line(value, count, shell_path)
    writer.write_command(command, env_prefix)
    if verbose:
        print(f"--> Command line added: {value}")


def process_run(
    writer: ScriptWriter, value: str, shell_path: str, *, verbose: bool = False
) -> None:
    """Translate the text after ``RUN `` of a buildkit-recorded step."""
    if value.startswith("|") and len(value) > 1:
        process_with_args(writer, value, shell_path, verbose=verbose)
        return
    invocation = shell_path + SHELL_FLAG
    command = value[len(invocation):] if value.startswith(invocation) else value
    writer.write_command(command)
    if verbose:
        print(f"--> Command line added: {command}")

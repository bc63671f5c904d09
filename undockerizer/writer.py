from __future__ import annotations

import shlex
from typing import Optional, TextIO

from . import __version__


class ScriptWriter:
    """Appends POSIX shell lines to ``stream`` in call order."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.lines = 0

    def _emit(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.lines += 1

    def write_header(self, image_name: str, shell_path: str = "/bin/sh") -> None:
        self._emit(f"#!{shell_path}")
        self._emit(f"# Generated by undockerizer {__version__} from image {image_name}")
        self._emit("# Layer archives are read from $UNDOCKERIZER_WORKDIR.")
        self._emit("")
        self._emit(
            'UNDOCKERIZER_WORKDIR="${UNDOCKERIZER_WORKDIR:-$(cd "$(dirname "$0")" && pwd)}"'
        )
        self._emit("")

    def write_command(self, command: str, env_prefix: Optional[str] = None) -> None:
        if env_prefix and env_prefix.strip():
            self._emit(f"(export {env_prefix.strip()}; {command})")
        else:
            self._emit(command)

    def write_comment(self, text: str) -> None:
        for line in text.splitlines() or [""]:
            self._emit(f"# {line}".rstrip())

    def write_env_var(self, name: str, value: str) -> None:
        self._emit(f"export {name}={shlex.quote(value)}")

    def write_var(self, name: str, value: str) -> None:
        self._emit(f"{name}={shlex.quote(value)}")

    def write_change_user(self, user: str) -> None:
        self.write_comment(f"USER {user}")
        self._emit(f"export UNDOCKERIZER_USER={shlex.quote(user)}")

    def write_message(self, text: str) -> None:
        self._emit(f"echo {shlex.quote(text)}")

    def write_file_exists(self, path: str, message: str) -> None:
        self._emit(
            f"if [ ! -e {shlex.quote(path)} ]; then "
            f"echo {shlex.quote(message)} >&2; exit 1; fi"
        )

    def write_footer(
        self,
        entrypoint: Optional[str] = None,
        cmd: Optional[str] = None,
        *,
        user: Optional[str] = None,
        working_dir: Optional[str] = None,
    ) -> None:
        self._emit("")
        if user:
            self.write_comment(f"USER: {user}")
        if working_dir:
            self.write_comment(f"WORKDIR: {working_dir}")
        if entrypoint:
            self.write_comment(f"ENTRYPOINT: {entrypoint}")
        if cmd:
            self.write_comment(f"CMD: {cmd}")
        self.write_message("undockerizer: done")

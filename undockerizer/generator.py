"""Translate an image's build history into shell script lines.

One ``ScriptGenerator.generate`` call is one ordered pass over the history:

* buildkit secret mounts are reported first (``buildkit.scan_build_secrets``);
* the first empty layer carrying the ``#(nop)`` marker anchors the shell
  invocation prefixes used to classify everything after it;
* every later entry is classified as an instruction sentence, a plain shell
  command or a ``|N`` build-argument line, and written to the script.

Parse failures local to one instruction are reported on stderr and skipped.
A malformed build-argument line raises ``ArgLineDecodeError`` and ends the run.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .addcopy import parse_add_copy, write_add
from .arglines import process_run, process_with_args
from .buildkit import scan_build_secrets
from .directives import (
    Directive,
    DirectiveKind,
    parse_directive,
    parse_exec_form,
    parse_key_value,
)
from .model import HistoryEntry
from .prefixes import match_no_op_prefix
from .writer import ScriptWriter


class AttachmentLookup(Protocol):
    def get_attachment_path(self, line: str) -> Optional[str]: ...


@dataclass
class GenerationSession:
    """Mutable scan state owned by exactly one generation run."""

    no_ops_prefix: Optional[str] = None
    instruction_prefix: Optional[str] = None
    first_marker_found: bool = False
    buildkit_detected: bool = False
    detected_secret_paths: set[str] = field(default_factory=set)
    last_command_sentence: Optional[str] = None
    last_entrypoint_sentence: Optional[str] = None

    def anchor(self, no_ops_prefix: str, instruction_prefix: str) -> None:
        if self.first_marker_found:
            return
        self.no_ops_prefix = no_ops_prefix
        self.instruction_prefix = instruction_prefix
        self.first_marker_found = True


class ScriptGenerator:
    def __init__(
        self,
        *,
        shell_path: str = "/bin/sh",
        verbose: bool = False,
        archive: bool = False,
        resources_to_archive: Optional[set[Path]] = None,
        strict_exec_form: bool = False,
    ) -> None:
        self.shell_path = shell_path
        self.verbose = verbose
        self.archive = archive
        self.resources_to_archive: set[Path] = (
            resources_to_archive if resources_to_archive is not None else set()
        )
        self.strict_exec_form = strict_exec_form

    def _trace(self, message: str) -> None:
        if self.verbose:
            print(message)

    def generate(
        self,
        history: Sequence[HistoryEntry],
        container: str,
        attachments: AttachmentLookup,
        writer: ScriptWriter,
    ) -> GenerationSession:
        session = GenerationSession()
        scan_build_secrets(history, session, writer)

        for entry in history:
            line = entry.created_by
            self._trace(f"Processing line: {line}")
            if not line:
                if session.first_marker_found:
                    print("WARN: layer without creation data", file=sys.stderr)
                continue

            if not session.first_marker_found:
                self._learn(session, entry, line)
                continue

            self._classify(session, entry, line, container, attachments, writer)
        return session

    def _learn(self, session: GenerationSession, entry: HistoryEntry, line: str) -> None:
        if not entry.empty_layer:
            self._trace(f"--> Skipped. First command not found. Line: {line}")
            return
        prefixes = match_no_op_prefix(line)
        if prefixes is None:
            self._trace(f"--> Skipped. No-op marker not found. Line: {line}")
            return
        session.anchor(*prefixes)
        self._trace(
            f"--> First command found. noOpsPrefix: {session.no_ops_prefix}, "
            f"instructionPrefix: {session.instruction_prefix}"
        )

    def _classify(
        self,
        session: GenerationSession,
        entry: HistoryEntry,
        line: str,
        container: str,
        attachments: AttachmentLookup,
        writer: ScriptWriter,
    ) -> None:
        assert session.no_ops_prefix is not None
        assert session.instruction_prefix is not None

        if line.startswith(session.no_ops_prefix):
            sentence = line[len(session.no_ops_prefix):].lstrip()
        elif entry.empty_layer:
            sentence = line
        elif line.startswith(session.instruction_prefix):
            command = line[len(session.instruction_prefix):].lstrip()
            writer.write_command(command)
            self._trace(f"--> Command line added: {line}")
            return
        elif line.startswith("|") and len(line) > 1:
            process_with_args(writer, line, self.shell_path, verbose=self.verbose)
            return
        else:
            sentence = line

        directive = parse_directive(sentence, line)
        self._apply(session, directive, line, container, attachments, writer)

    def _apply(
        self,
        session: GenerationSession,
        directive: Directive,
        line: str,
        container: str,
        attachments: AttachmentLookup,
        writer: ScriptWriter,
    ) -> None:
        kind = directive.kind
        value = directive.argument

        if kind is DirectiveKind.LABEL:
            writer.write_comment(value)
            self._trace(f"--> Label added: {value}")
        elif kind is DirectiveKind.MAINTAINER:
            writer.write_comment(directive.sentence)
            self._trace(f"--> Maintainer added: {directive.sentence}")
        elif kind is DirectiveKind.ENV:
            parsed = parse_key_value(value)
            if parsed is None:
                print(f"--> Error parsing ENV: {value}", file=sys.stderr)
                return
            key, env_value = parsed
            writer.write_env_var(key, env_value)
            self._trace(f"--> Environment variable added. key: {key}, value: {env_value}")
        elif kind is DirectiveKind.ARG:
            parsed = parse_key_value(value)
            if parsed is None:
                print(f"--> Error parsing ARG: {value}", file=sys.stderr)
                return
            key, arg_value = parsed
            # Unreachable while parse_key_value maps a missing value to "".
            if arg_value is not None:
                writer.write_var(key, arg_value)
            else:
                writer.write_comment(f"ARG var without default value: {key}")
            self._trace(f"--> Local variable added. key: {key}, value: {arg_value}")
        elif kind is DirectiveKind.USER:
            writer.write_change_user(value)
            self._trace(f"--> Set user added: {value}")
        elif kind is DirectiveKind.WORKDIR:
            writer.write_command(f"mkdir -p {value} & cd {value}")
            self._trace(f"--> Set workdir added: {value}")
        elif kind is DirectiveKind.EXPOSE:
            writer.write_comment(f"Expose Ports: {value}")
            self._trace(f"--> Comment: Expose ports {value}")
        elif kind is DirectiveKind.CMD:
            session.last_command_sentence = parse_exec_form(value, self.strict_exec_form)
            self._trace(f"--> CMD line saved: {session.last_command_sentence}")
        elif kind is DirectiveKind.ENTRYPOINT:
            session.last_entrypoint_sentence = parse_exec_form(value, self.strict_exec_form)
            self._trace(f"--> ENTRYPOINT line saved: {session.last_entrypoint_sentence}")
        elif kind in (DirectiveKind.ADD, DirectiveKind.COPY):
            self._add(value, line, container, attachments, writer)
        elif kind is DirectiveKind.RUN:
            process_run(writer, value, self.shell_path, verbose=self.verbose)
        elif kind is DirectiveKind.UNSUPPORTED:
            writer.write_comment(directive.sentence)
            print(
                f"--> WARN: Operation not supported (comment added): {directive.sentence}",
                file=sys.stderr,
            )
        else:  # pragma: no cover - every kind is handled above
            raise AssertionError(f"Unhandled directive kind: {kind}")

    def _add(
        self,
        value: str,
        line: str,
        container: str,
        attachments: AttachmentLookup,
        writer: ScriptWriter,
    ) -> None:
        spec = parse_add_copy(value)
        if spec is None:
            return
        attachment = attachments.get_attachment_path(line)
        if attachment is None:
            print(f"--> WARN: No layer archive found for: {line}", file=sys.stderr)
            return
        write_add(
            writer,
            spec,
            attachment,
            container,
            archive=self.archive,
            resources_to_archive=self.resources_to_archive,
        )
        self._trace(f"--> Files added: {value}")

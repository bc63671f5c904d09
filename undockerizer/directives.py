"""Classify an instruction sentence into a closed set of directive kinds."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DirectiveKind(Enum):
    LABEL = "LABEL"
    MAINTAINER = "MAINTAINER"
    ENV = "ENV"
    ARG = "ARG"
    USER = "USER"
    WORKDIR = "WORKDIR"
    EXPOSE = "EXPOSE"
    CMD = "CMD"
    ENTRYPOINT = "ENTRYPOINT"
    ADD = "ADD"
    COPY = "COPY"
    RUN = "RUN"
    UNSUPPORTED = "UNSUPPORTED"


# Checked against the sentence, in this order. RUN is checked separately
# against the original history line.
SENTENCE_KINDS = (
    DirectiveKind.LABEL,
    DirectiveKind.MAINTAINER,
    DirectiveKind.ENV,
    DirectiveKind.ARG,
    DirectiveKind.USER,
    DirectiveKind.WORKDIR,
    DirectiveKind.EXPOSE,
    DirectiveKind.CMD,
    DirectiveKind.ENTRYPOINT,
    DirectiveKind.ADD,
    DirectiveKind.COPY,
)

KEY_VALUE_PATTERN = re.compile(r"([\w-]+)(?:=(.*))?", re.DOTALL)


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    argument: str
    sentence: str


def parse_directive(sentence: str, line: str) -> Directive:
    """Dispatch on the leading keyword (case-sensitive, one separating space)."""
    for kind in SENTENCE_KINDS:
        keyword = kind.value + " "
        if sentence.startswith(keyword):
            return Directive(kind, sentence[len(keyword):], sentence)
    if line.startswith("RUN "):
        return Directive(DirectiveKind.RUN, line[len("RUN "):], sentence)
    return Directive(DirectiveKind.UNSUPPORTED, sentence, sentence)


def parse_key_value(text: str) -> Optional[tuple[str, str]]:
    """Parse ``KEY[=value]`` as recorded for ENV and ARG.

    The value is everything after the first ``=``; a missing value is the
    empty string, never None. Returns None when ``text`` does not start with
    an identifier.
    """
    m = KEY_VALUE_PATTERN.match(text)
    if not m:
        return None
    return m.group(1), m.group(2) or ""


def _tokenize_exec_array(inner: str) -> str:
    # Elements containing spaces or quotes are split too.
    tokens = [t for t in re.split(r'[" ]', inner) if t and t.strip(",")]
    return " ".join(tokens)


def parse_exec_form(argument: str, strict: bool = False) -> str:
    """Flatten a CMD/ENTRYPOINT argument into one command string.

    ``["/bin/sh" "-c" "echo hi"]`` and ``["/bin/sh","-c","echo hi"]`` both
    become ``/bin/sh -c echo hi``. Shell-form arguments are returned as is.
    ``strict`` decodes the array as JSON first and only falls back to the
    tokenizer when that fails.
    """
    value = argument.strip()
    if not (value.startswith('["') and value.endswith('"]')):
        return argument
    if strict:
        try:
            arr = json.loads(value)
        except json.JSONDecodeError:
            arr = None
        if isinstance(arr, list) and all(isinstance(x, str) for x in arr):
            return " ".join(arr)
    return _tokenize_exec_array(value[2:-2])

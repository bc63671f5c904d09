from __future__ import annotations

import re
from typing import Optional

# Group 1: shell invocation plus the no-op marker. Group 2: the bare invocation.
NO_OP_PATTERN = re.compile(r"(([\w/\\.]*\s*-c\s)#\(nop\))\s")


def match_no_op_prefix(line: str) -> Optional[tuple[str, str]]:
    """Return ``(no_ops_prefix, instruction_prefix)`` learned from ``line``.

    ``no_ops_prefix`` is the whole match, marker and trailing whitespace
    included (``"/bin/sh -c #(nop) "``); ``instruction_prefix`` is the shell
    invocation alone (``"/bin/sh -c "``). None when the line carries no marker.
    """
    m = NO_OP_PATTERN.search(line)
    if not m:
        return None
    return m.group(0), m.group(2)

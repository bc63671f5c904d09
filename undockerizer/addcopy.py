from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .image import content_folder_name
from .writer import ScriptWriter

WORKDIR_VAR = "$UNDOCKERIZER_WORKDIR"


@dataclass(frozen=True)
class AddCopySpec:
    filename: str
    target: str
    user: Optional[str] = None
    group: Optional[str] = None


def _is_glued_chown(value: str, space: int) -> bool:
    # The glued form carries its reference inside the chown token, so the
    # first space already opens the " in " target clause.
    return value.startswith(" in ", space)


def parse_add_copy(value: str) -> Optional[AddCopySpec]:
    """Parse the argument of a recorded ADD/COPY instruction.

    Accepted shapes::

        file:<hash> in <target>
        dir:<hash> in <target>
        --chown=<user>file:<hash> in <target>
        --chown=<user>:<group>file:<hash> in <target>
        --chown=<user>[:<group>] file:<hash> in <target>
        <file> <target> # buildkit
    """
    filename: Optional[str] = None
    target: Optional[str] = None
    user: Optional[str] = None
    group: Optional[str] = None

    space = value.find(" ")
    if space < 0:
        print("Error processing ADD instruction (parsing in clause).", file=sys.stderr)
        return None

    if value.startswith("--chown=") and not _is_glued_chown(value, space):
        # --chown=<user>[:<group>] <reference> ...
        owner = value[len("--chown="):space]
        rest = parse_add_copy(value[space + 1:])
        if rest is None:
            return None
        user, _, group = owner.partition(":")
        return AddCopySpec(
            filename=rest.filename,
            target=rest.target,
            user=user or None,
            group=group or None,
        )

    if value.startswith("--chown="):
        chown = value[len("--chown="):space]
        colon = chown.find(":")
        if colon < 0:
            print("Error processing ADD instruction (parsing user).", file=sys.stderr)
            return None
        colon2 = chown.find(":", colon + 1)
        # The owner field is recorded glued to the "file"/"dir " reference
        # kind, e.g. "alicefile:abc" or "alice:stafffile:abc"; drop 4 chars.
        if colon2 < 0:
            user = chown[: colon - 4]
            filename = chown[colon + 1:]
        else:
            user = chown[:colon]
            group = chown[colon + 1: colon2 - 4]
            filename = chown[colon2 + 1:]
    elif value.startswith("file:"):
        filename = value[len("file:"):space]
    elif value.startswith("dir:"):
        filename = value[len("dir:"):space]
    else:
        filename = value[:space]

    if value.startswith(" in ", space):
        target = value[space + len(" in "):]
    else:
        comment = value.find("#", space + 1)
        if comment < 0:
            target = value[space + 1:]
        else:
            target = value[space + 1: comment].rstrip()

    if not filename or not target:
        print(f"Error processing ADD instruction (unresolved file or target): {value}", file=sys.stderr)
        return None
    return AddCopySpec(filename=filename, target=target, user=user, group=group)


def write_add(
    writer: ScriptWriter,
    spec: AddCopySpec,
    attachment_path: str,
    container: str,
    *,
    archive: bool = False,
    resources_to_archive: Optional[set[Path]] = None,
) -> None:
    content_file = f"{content_folder_name(container)}/{attachment_path}"
    tmp_dir = f"{WORKDIR_VAR}/{container}/{attachment_path}"
    source = f"{WORKDIR_VAR}/{content_file}"
    if archive and resources_to_archive is not None:
        resources_to_archive.add(Path(content_file))

    writer.write_command(f"mkdir -p {tmp_dir} && tar -xvf {source} -C {tmp_dir}")
    if spec.user is not None:
        owner = f"{spec.user}:{spec.group}" if spec.group is not None else spec.user
        writer.write_command(f"chown -R {owner} {tmp_dir}/")
    writer.write_command(f"cp -r {tmp_dir}/* / && rm -rf {tmp_dir}")

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

from .model import HistoryEntry
from .writer import ScriptWriter

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from .generator import GenerationSession

BUILD_SECRET_PATTERN = re.compile(r"(/run/secrets/[\w.\\/_\-]*)")


def is_buildkit_entry(entry: HistoryEntry) -> bool:
    return bool(
        (entry.comment is not None and entry.comment.startswith("buildkit"))
        or (entry.created_by is not None and entry.created_by.endswith("# buildkit"))
    )


def find_secret_paths(line: str) -> list[str]:
    return BUILD_SECRET_PATTERN.findall(line)


def scan_build_secrets(
    history: Iterable[HistoryEntry],
    session: "GenerationSession",
    writer: ScriptWriter,
) -> None:
    """Warn about (and guard against missing) secret mounts used by buildkit builds."""
    tagged = [h for h in history if is_buildkit_entry(h)]
    if not tagged:
        print("Buildkit mode not found")
        return

    session.buildkit_detected = True
    print("Buildkit mode detected")
    for entry in tagged:
        if entry.created_by is None:
            continue
        for path in find_secret_paths(entry.created_by):
            if path not in session.detected_secret_paths:
                print(f"Docker build secret detected: {path}")
            session.detected_secret_paths.add(path)

    if not session.detected_secret_paths:
        writer.write_message(
            "WARN: The image could be generated with docker build secrets. "
            "Default paths for Docker build Secrets were not found. Note that if "
            "the files with the secrets used during the image build do not exist "
            "in the filesystem, the script will fail."
        )
        return

    writer.write_message("WARN: The image could be generated with docker build secrets.")
    for path in sorted(session.detected_secret_paths):
        writer.write_message(
            f"Docker build secret detected: {path} -> make sure you have the file "
            "in the detailed location"
        )
        writer.write_file_exists(path, f"secret file '{path}' not found!")

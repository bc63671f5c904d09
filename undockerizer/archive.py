from __future__ import annotations

import tarfile
from pathlib import Path
from typing import Iterable, Optional


def archive_resources(
    script_path: Path,
    workdir: Path,
    resources: Iterable[Path],
    destination: Optional[Path] = None,
) -> Path:
    """Bundle the script with the layer archives it extracts at runtime.

    ``resources`` are relative to ``workdir`` and keep that relative path inside
    the bundle, so unpacking it next to the script restores the layout the
    script expects under ``$UNDOCKERIZER_WORKDIR``.
    """
    archive = destination or script_path.with_name(script_path.name + ".tar.gz")
    rel_resources = sorted({Path(r) for r in resources}, key=lambda p: p.as_posix())
    for rel in rel_resources:
        if not (workdir / rel).is_file():
            raise FileNotFoundError(f"Resource to archive not found: {workdir / rel}")

    print(f"Archiving {len(rel_resources)} layer file(s) into {archive}")
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(script_path, arcname=script_path.name)
        for rel in rel_resources:
            tar.add(workdir / rel, arcname=rel.as_posix())
    return archive

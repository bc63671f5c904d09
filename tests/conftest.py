from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Any, Optional

import pytest

from undockerizer.model import HistoryEntry


class RecordingWriter:
    """Script sink that records calls instead of formatting them."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def write_command(self, command: str, env_prefix: Optional[str] = None) -> None:
        self.calls.append(("command", command, env_prefix))

    def write_comment(self, text: str) -> None:
        self.calls.append(("comment", text))

    def write_env_var(self, name: str, value: str) -> None:
        self.calls.append(("env", name, value))

    def write_var(self, name: str, value: str) -> None:
        self.calls.append(("var", name, value))

    def write_change_user(self, user: str) -> None:
        self.calls.append(("user", user))

    def write_message(self, text: str) -> None:
        self.calls.append(("message", text))

    def write_file_exists(self, path: str, message: str) -> None:
        self.calls.append(("file_exists", path, message))

    def of(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == kind]


class StaticAttachments:
    def __init__(self, paths: Optional[dict[str, str]] = None) -> None:
        self.paths = paths or {}

    def get_attachment_path(self, line: str) -> Optional[str]:
        return self.paths.get(line)


NOP = "/bin/sh -c #(nop) "


def nop(instruction: str) -> HistoryEntry:
    return HistoryEntry(created_by=NOP + instruction, empty_layer=True)


def layer(created_by: str, comment: Optional[str] = None) -> HistoryEntry:
    return HistoryEntry(created_by=created_by, comment=comment, empty_layer=False)


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def attachments() -> StaticAttachments:
    return StaticAttachments()


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def _layer_tar(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, data in files.items():
            _add_bytes(tar, name, data)
    return buf.getvalue()


ADD_LINE = "/bin/sh -c #(nop) ADD file:abc123 in / "
RUN_LINE = "/bin/sh -c apt-get update"


@pytest.fixture
def saved_image(tmp_path: Path) -> Path:
    """A minimal `docker save` archive with two layers."""
    config = {
        "container": "c0ffee",
        "config": {
            "Env": ["PATH=/usr/bin"],
            "User": "",
            "WorkingDir": "/srv",
            "Entrypoint": None,
            "Cmd": ["/bin/sh"],
        },
        "history": [
            {"created_by": "/bin/sh -c #(nop)  LABEL maintainer=ops", "empty_layer": True},
            {"created_by": ADD_LINE},
            {"created_by": "/bin/sh -c #(nop)  ENV APP_HOME=/srv", "empty_layer": True},
            {"created_by": RUN_LINE},
            {"created_by": '/bin/sh -c #(nop)  CMD ["/bin/sh" "-c" "serve"]', "empty_layer": True},
        ],
    }
    manifest = [
        {
            "Config": "deadbeefcafe0123.json",
            "RepoTags": ["example/app:latest"],
            "Layers": ["aaa/layer.tar", "bbb/layer.tar"],
        }
    ]
    archive = tmp_path / "image.tar"
    with tarfile.open(archive, "w") as tar:
        _add_bytes(tar, "manifest.json", json.dumps(manifest).encode())
        _add_bytes(tar, "deadbeefcafe0123.json", json.dumps(config).encode())
        _add_bytes(tar, "aaa/layer.tar", _layer_tar({"etc/motd": b"hello\n"}))
        _add_bytes(tar, "bbb/layer.tar", _layer_tar({"var/lib/apt/lists/x": b""}))
    return archive

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Optional


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded build step from the image config's ``history`` list."""

    created_by: Optional[str] = None
    comment: Optional[str] = None
    empty_layer: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            created_by=data.get("created_by"),
            comment=data.get("comment"),
            empty_layer=bool(data.get("empty_layer", False)),
        )


@dataclass(frozen=True)
class Manifest:
    """One entry of a ``docker save`` manifest.json."""

    config: str
    repo_tags: list[str] = field(default_factory=list)
    layers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Manifest":
        return cls(
            config=data.get("Config") or "",
            repo_tags=list(data.get("RepoTags") or []),
            layers=list(data.get("Layers") or []),
        )

    @property
    def config_id(self) -> str:
        name = PurePosixPath(self.config).name
        if name.endswith(".json"):
            name = name[: -len(".json")]
        return name

    @property
    def image_name(self) -> str:
        if self.repo_tags:
            return self.repo_tags[0]
        return self.config_id[:12]


@dataclass
class ImageConfig:
    container: str
    history: list[HistoryEntry] = field(default_factory=list)
    user: str = ""
    working_dir: str = ""
    entrypoint: Optional[list[str]] = None
    cmd: Optional[list[str]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, config_id: str = "") -> "ImageConfig":
        # Buildkit images carry no "container" field; fall back to the config blob id.
        container = data.get("container") or config_id[:12]
        runtime = data.get("config") or {}
        return cls(
            container=container,
            history=[HistoryEntry.from_dict(h) for h in data.get("history") or []],
            user=runtime.get("User") or "",
            working_dir=runtime.get("WorkingDir") or "",
            entrypoint=runtime.get("Entrypoint"),
            cmd=runtime.get("Cmd"),
        )

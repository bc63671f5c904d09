"""Read a ``docker save`` image (tarball or extracted directory).

Only the pieces the script generator needs are decoded: the manifest entry,
the image config with its ordered history, and the layer archives, which are
copied verbatim under the content folder so the generated script can
``tar -xvf`` them later.
"""

from __future__ import annotations

import json
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from tqdm import tqdm

from .model import ImageConfig, Manifest

MANIFEST_JSON_FILE = "manifest.json"


class ImageLoadError(RuntimeError):
    """Raised when the image archive is missing or malformed."""


def content_folder_name(container: str) -> str:
    return f"{container}-content"


class ImageSource:
    """Uniform read access to a saved image, packed or unpacked."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._tar: Optional[tarfile.TarFile] = None
        if path.is_file():
            try:
                self._tar = tarfile.open(path, "r:*")
            except tarfile.TarError as e:
                raise ImageLoadError(f"Not a valid image archive: {path}: {e}") from e
        elif not path.is_dir():
            raise ImageLoadError(f"Image not found: {path}")

    def __enter__(self) -> "ImageSource":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._tar is not None:
            self._tar.close()
            self._tar = None

    def _member(self, name: str) -> tarfile.TarInfo:
        assert self._tar is not None
        name = PurePosixPath(name).as_posix()
        for candidate in (name, f"./{name}"):
            try:
                # extractfile() follows links, which newer layouts use for layer.tar.
                return self._tar.getmember(candidate)
            except KeyError:
                continue
        raise ImageLoadError(f"{name} missing in {self.path}")

    def read_bytes(self, name: str) -> bytes:
        if self._tar is None:
            file = self.path / name
            if not file.is_file():
                raise ImageLoadError(f"{name} missing in {self.path}")
            return file.read_bytes()
        fileobj = self._tar.extractfile(self._member(name))
        if fileobj is None:
            raise ImageLoadError(f"{name} is not a regular file in {self.path}")
        with fileobj:
            return fileobj.read()

    def read_json(self, name: str) -> Any:
        try:
            return json.loads(self.read_bytes(name))
        except json.JSONDecodeError as e:
            raise ImageLoadError(f"Invalid JSON in {name}: {e}") from e

    def copy_to(self, name: str, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if self._tar is None:
            src = self.path / name
            if not src.is_file():
                raise ImageLoadError(f"{name} missing in {self.path}")
            shutil.copyfile(src, dest)
            return
        fileobj = self._tar.extractfile(self._member(name))
        if fileobj is None:
            raise ImageLoadError(f"{name} is not a regular file in {self.path}")
        with fileobj, open(dest, "wb") as f:
            shutil.copyfileobj(fileobj, f)


def open_image(path: Path | str) -> ImageSource:
    return ImageSource(Path(path))


def load_manifest(source: ImageSource, tag: Optional[str] = None) -> Manifest:
    data = source.read_json(MANIFEST_JSON_FILE)
    if not isinstance(data, list) or not data:
        raise ImageLoadError(f"{MANIFEST_JSON_FILE} has no image entries")
    manifests = [Manifest.from_dict(entry) for entry in data]
    if tag:
        for manifest in manifests:
            if tag in manifest.repo_tags:
                return manifest
        raise ImageLoadError(f"Tag {tag} not found in {MANIFEST_JSON_FILE}")
    return manifests[0]


def load_config(source: ImageSource, manifest: Manifest) -> ImageConfig:
    if not manifest.config:
        raise ImageLoadError("Manifest entry has no Config reference")
    data = source.read_json(manifest.config)
    if not isinstance(data, dict):
        raise ImageLoadError(f"Image config {manifest.config} is not an object")
    return ImageConfig.from_dict(data, config_id=manifest.config_id)


def extract_layers(
    source: ImageSource,
    manifest: Manifest,
    destination: Path,
    *,
    show_progress: bool = True,
) -> list[Path]:
    """Copy every layer archive under ``destination``, keeping manifest paths."""
    extracted: list[Path] = []
    pbar = (
        tqdm(total=len(manifest.layers), desc="Extracting layers", unit="layer")
        if show_progress
        else None
    )
    try:
        for layer in manifest.layers:
            dest = destination / layer
            source.copy_to(layer, dest)
            extracted.append(dest)
            if pbar is not None:
                pbar.update(1)
    finally:
        if pbar is not None:
            pbar.close()
    return extracted


class AttachmentResolver:
    """Maps the created_by line of a non-empty history entry to its layer archive.

    History and manifest layers are correlated positionally: the n-th history
    entry that is not an empty layer produced the n-th layer in the manifest.
    """

    def __init__(self, manifest: Manifest, config: ImageConfig) -> None:
        self._paths: dict[str, str] = {}
        non_empty = [h for h in config.history if not h.empty_layer]
        if len(non_empty) != len(manifest.layers):
            print(
                f"WARN: {len(non_empty)} non-empty history entries but "
                f"{len(manifest.layers)} layers in manifest",
            )
        for entry, layer in zip(non_empty, manifest.layers):
            if entry.created_by is not None:
                self._paths.setdefault(entry.created_by, layer)

    def get_attachment_path(self, line: str) -> Optional[str]:
        return self._paths.get(line)

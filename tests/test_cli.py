"""End-to-end tests for the undockerizer command."""

import os
import tarfile

import pytest

from undockerizer.archive import archive_resources
from undockerizer.cli import build_parser, main, run


def test_parser_defaults_from_environment(monkeypatch):
    monkeypatch.setenv("UNDOCKERIZER_SHELL", "/bin/ash")
    args = build_parser().parse_args(["image.tar"])
    assert args.shell == "/bin/ash"
    assert args.output == "undockerize.sh"
    assert not args.archive


def test_generate_script(saved_image, tmp_path):
    output = tmp_path / "out" / "build.sh"
    args = build_parser().parse_args([str(saved_image), "-o", str(output), "-q"])
    run(args)

    text = output.read_text()
    assert text.startswith("#!/bin/sh\n")
    assert "export APP_HOME=/srv\n" in text
    assert "apt-get update\n" in text
    assert "tar -xvf $UNDOCKERIZER_WORKDIR/c0ffee-content/aaa/layer.tar" in text
    assert "# CMD: /bin/sh -c serve\n" in text
    assert "# WORKDIR: /srv\n" in text
    assert "# USER:" not in text
    assert os.access(output, os.X_OK)
    assert (tmp_path / "out" / "c0ffee-content" / "aaa" / "layer.tar").is_file()
    # The anchoring LABEL entry is not translated.
    assert "maintainer=ops" not in text


def test_archive_bundles_script_and_layers(saved_image, tmp_path):
    output = tmp_path / "build.sh"
    args = build_parser().parse_args([str(saved_image), "-o", str(output), "-q", "--archive"])
    run(args)

    with tarfile.open(tmp_path / "build.sh.tar.gz") as tar:
        names = tar.getnames()
    assert sorted(names) == ["build.sh", "c0ffee-content/aaa/layer.tar"]


def test_archive_missing_resource(tmp_path):
    script = tmp_path / "s.sh"
    script.write_text("#!/bin/sh\n")
    with pytest.raises(FileNotFoundError):
        archive_resources(script, tmp_path, [tmp_path / "missing.tar"])


def test_missing_image_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "nope.tar"), "-o", str(tmp_path / "x.sh"), "-q"])
    assert "Image not found" in str(excinfo.value.code)

#!/usr/bin/env python3
"""Generate a shell script that reproduces a saved container image on a host.

The input is a ``docker save`` archive (or its extracted directory). Layer
archives are copied next to the generated script so it can replay every ADD
and COPY without a container runtime.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import dotenv

from . import __version__
from .archive import archive_resources
from .arglines import ArgLineDecodeError
from .generator import GenerationSession, ScriptGenerator
from .image import (
    AttachmentResolver,
    ImageLoadError,
    content_folder_name,
    extract_layers,
    load_config,
    load_manifest,
    open_image,
)
from .model import ImageConfig
from .writer import ScriptWriter


def _print_header(message: str) -> None:
    print("\n" + "=" * 80)
    print(message)
    print("=" * 80)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="undockerizer", description=__doc__)
    parser.add_argument("image", help="Image archive from `docker save`, or its extracted directory")
    parser.add_argument(
        "-o",
        "--output",
        default=os.environ.get("UNDOCKERIZER_OUTPUT", "undockerize.sh"),
        help="Path of the generated script",
    )
    parser.add_argument(
        "-w",
        "--workdir",
        default=os.environ.get("UNDOCKERIZER_WORKDIR"),
        help="Directory receiving the layer archives (default: the script's directory)",
    )
    parser.add_argument(
        "-s",
        "--shell",
        default=os.environ.get("UNDOCKERIZER_SHELL", "/bin/sh"),
        help="Shell path the image used for RUN steps",
    )
    parser.add_argument("-t", "--tag", default=None, help="Repo tag to pick from a multi-image archive")
    parser.add_argument(
        "-a",
        "--archive",
        action="store_true",
        help="Bundle the script and the layer archives it uses into <output>.tar.gz",
    )
    parser.add_argument(
        "--strict-exec-form",
        action="store_true",
        help="Decode CMD/ENTRYPOINT arrays as JSON instead of the lenient tokenizer",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Trace every history entry")
    parser.add_argument("-q", "--quiet", action="store_true", help="Hide progress bars")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _default_sentence(value: Optional[list[str]]) -> Optional[str]:
    return " ".join(value) if value else None


def write_script(
    config: ImageConfig,
    attachments: AttachmentResolver,
    writer: ScriptWriter,
    generator: ScriptGenerator,
    image_name: str,
) -> GenerationSession:
    writer.write_header(image_name, generator.shell_path)
    session = generator.generate(config.history, config.container, attachments, writer)
    writer.write_footer(
        session.last_entrypoint_sentence or _default_sentence(config.entrypoint),
        session.last_command_sentence or _default_sentence(config.cmd),
        user=config.user,
        working_dir=config.working_dir,
    )
    return session


def run(args: argparse.Namespace) -> Path:
    output = Path(args.output).resolve()
    workdir = Path(args.workdir).resolve() if args.workdir else output.parent

    _print_header(f"Reading image {args.image}")
    with open_image(args.image) as source:
        manifest = load_manifest(source, args.tag)
        config = load_config(source, manifest)
        print(f"Image: {manifest.image_name}, container: {config.container}")
        print(f"{len(config.history)} history entries, {len(manifest.layers)} layers")
        extract_layers(
            source,
            manifest,
            workdir / content_folder_name(config.container),
            show_progress=not args.quiet,
        )

    _print_header(f"Generating {output}")
    generator = ScriptGenerator(
        shell_path=args.shell,
        verbose=args.verbose,
        archive=args.archive,
        strict_exec_form=args.strict_exec_form,
    )
    attachments = AttachmentResolver(manifest, config)
    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        with output.open("w", encoding="utf-8") as f:
            writer = ScriptWriter(f)
            write_script(config, attachments, writer, generator, manifest.image_name)
    except ArgLineDecodeError:
        output.unlink(missing_ok=True)
        raise
    os.chmod(output, 0o755)
    print(f"Generated: {output} ({writer.lines} lines)")

    if args.archive:
        _print_header("Archiving")
        bundle = archive_resources(output, workdir, generator.resources_to_archive)
        print(f"Archive: {bundle}")
    return output


def main(argv: Optional[Sequence[str]] = None) -> None:
    dotenv.load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except (ImageLoadError, ArgLineDecodeError, FileNotFoundError) as e:
        raise SystemExit(f"Error: {e}")
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()

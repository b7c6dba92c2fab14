"""Command line front end: decode files and print one summary line per file."""

from __future__ import annotations

import argparse
import os
import sys
import time

from runtime_image_loader.image_engine import (
    AnimatedImage,
    FilterMode,
    ImageLoader,
    ImageLoadError,
    ImageReadResult,
    TransformParams,
)
from runtime_image_loader.image_engine.codecs import GifCodec
from runtime_image_loader.logger import CATS_ENV, LEVEL_ENV, get_logger, setup_logger
from runtime_image_loader.settings_manager import SettingsManager

_POLL_SECONDS = 0.01


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="runtime-image-loader", description="Decode images on a background reader")
    parser.add_argument("files", nargs="+", help="Image files to decode")
    parser.add_argument("--percent", type=int, default=100, help="Resize to N%% of each dimension (1-99)")
    parser.add_argument(
        "--filter", choices=[m.value for m in FilterMode], default=FilterMode.DEFAULT.value, help="Resize filter"
    )
    parser.add_argument("--pixels-only", action="store_true", help="Return flat RGBA8 pixels instead of a buffer")
    parser.add_argument("--keep-format", action="store_true", help="Keep gray/16-bit formats (not for UI)")
    parser.add_argument("--sync", action="store_true", help="Decode on the calling thread")
    parser.add_argument("--settings", help="Path to a settings JSON file")
    parser.add_argument("--log-level", help="Set log level")
    parser.add_argument("--log-cats", help="Set log categories")
    return parser


def _describe(path: str, result: ImageReadResult) -> str:
    if not result.succeeded:
        return _error(path, result.error)
    if result.pixels is not None:
        return f"{path}: OK pixels={len(result.pixels)}"
    buf = result.raw_buffer
    return f"{path}: OK {buf.width}x{buf.height} {buf.pixel_format.name} {buf.gamma_space.value}"


def _error(path: str, message: str) -> str:
    return f"{path}: ERROR {message}"


def _describe_gif(path: str, image: AnimatedImage) -> str:
    decoder = image.decoder
    return f"{path}: OK {image.width}x{image.height} GIF frames={decoder.frame_count} loop={decoder.loop_count}"


def run(argv: list[str] | None = None) -> int:
    """Entrypoint; returns the process exit code (1 when any file failed)."""
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    if args.log_level:
        os.environ[LEVEL_ENV] = args.log_level
    if args.log_cats:
        os.environ[CATS_ENV] = args.log_cats
    setup_logger()
    logger = get_logger("main")

    params = TransformParams(
        filter_mode=FilterMode(args.filter),
        percent_size_x=args.percent,
        percent_size_y=args.percent,
        for_ui=not args.keep_format,
    )
    loader = ImageLoader(settings=SettingsManager(args.settings))
    lines: dict[str, str] = {}
    gif_readers = []
    gif_codec = GifCodec()

    def on_done(path: str):
        return lambda result: lines.__setitem__(path, _describe(path, result))

    try:
        for path in args.files:
            try:
                data = loader.load_file_to_bytes(path)
            except ImageLoadError as e:
                lines[path] = _error(path, str(e))
                continue
            if gif_codec.sniff(data):
                gif_readers.append(
                    loader.load_gif_from_bytes(
                        data,
                        on_success=lambda image, p=path: lines.__setitem__(p, _describe_gif(p, image)),
                        on_fail=lambda error, p=path: lines.__setitem__(p, _error(p, error)),
                        filter_mode=params.filter_mode,
                        synchronous=args.sync,
                    )
                )
            elif args.sync:
                result = (
                    loader.load_pixels_from_bytes_sync(data)
                    if args.pixels_only
                    else loader.load_image_from_bytes_sync(data, params)
                )
                lines[path] = _describe(path, result)
            elif args.pixels_only:
                loader.load_pixels_from_bytes_async(data, on_done(path))
            else:
                loader.load_image_from_bytes_async(data, on_done(path), params)

        while len(lines) < len(set(args.files)):
            if not loader.tick():
                time.sleep(_POLL_SECONDS)
    finally:
        loader.shutdown()

    failed = 0
    for path in args.files:
        line = lines[path]
        failed += line.startswith(_error(path, ""))
        print(line)
    logger.debug("decoded %d file(s), %d failed", len(args.files), failed)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(run())

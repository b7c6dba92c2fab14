"""Image Engine - decode and delivery backend.

This package turns encoded image bytes into canonical pixel buffers:
- Format dispatch and codecs (codecs)
- Import pipeline: file loading, resize, texture format (pipeline, texture)
- Dedicated reader thread and result store (reader, result_store)
- Animated GIF path on a shared pool (gif_reader, animated)
- Owner-context delivery (completion, qt_sink)

Usage:
    from runtime_image_loader.image_engine import ImageLoader

    loader = ImageLoader()
    loader.load_image_async("photo.png", on_completed)
    ...
    loader.tick()  # once per frame, on the owner thread
"""

from .animated import AnimatedImage, GifFrameSource
from .completion import CompletionSink, QueuedCompletionSink
from .errors import (
    DecodeFailureError,
    ImageIOError,
    ImageLoadError,
    ResolutionRejectedError,
    ResourceCreationError,
    UnsupportedFormatError,
)
from .gif_reader import GifReader
from .loader import ImageLoader
from .pipeline import ImportPipeline
from .raw_image import CompressionHint, GammaSpace, PixelFormat, RawImageBuffer
from .reader import ImageReader, ReaderState
from .requests import (
    FilePath,
    FilterMode,
    ImageReadRequest,
    ImageReadResult,
    InMemoryBytes,
    SubmitMode,
    TransformParams,
)
from .texture import TextureBuilder, TextureFormat

__all__ = [
    "AnimatedImage",
    "CompletionSink",
    "CompressionHint",
    "DecodeFailureError",
    "FilePath",
    "FilterMode",
    "GammaSpace",
    "GifFrameSource",
    "GifReader",
    "ImageIOError",
    "ImageLoadError",
    "ImageLoader",
    "ImageReadRequest",
    "ImageReadResult",
    "ImageReader",
    "ImportPipeline",
    "InMemoryBytes",
    "PixelFormat",
    "QueuedCompletionSink",
    "RawImageBuffer",
    "ReaderState",
    "ResolutionRejectedError",
    "ResourceCreationError",
    "SubmitMode",
    "TextureBuilder",
    "TextureFormat",
    "TransformParams",
    "UnsupportedFormatError",
]

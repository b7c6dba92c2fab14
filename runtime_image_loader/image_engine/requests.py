"""Request/result value types crossing the loader boundary.

Payloads are plain Python objects so they can be handed between the caller,
the worker thread and the completion context without sharing mutable state.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from .raw_image import RawImageBuffer

_request_ids = itertools.count(1)


class FilterMode(Enum):
    DEFAULT = "default"
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    TRILINEAR = "trilinear"


class SubmitMode(Enum):
    SYNC = "sync"
    ASYNC = "async"


@dataclass(frozen=True)
class FilePath:
    path: str

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("FilePath requires a non-empty path")

    @property
    def source_id(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class InMemoryBytes:
    data: bytes = field(repr=False)

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("InMemoryBytes requires a non-empty buffer")
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))

    @property
    def source_id(self) -> str:
        return ""


InputImage = FilePath | InMemoryBytes


@dataclass(frozen=True)
class TransformParams:
    """Post-decode transforms.

    Percent sizes keep N% of each dimension; the resize only happens when both
    values lie strictly inside (0, 100), anything else leaves the image alone.
    """

    filter_mode: FilterMode = FilterMode.DEFAULT
    percent_size_x: int = 100
    percent_size_y: int = 100
    for_ui: bool = True
    pixels_only_override: bool = False

    def is_percent_size_valid(self) -> bool:
        return 0 < self.percent_size_x < 100 and 0 < self.percent_size_y < 100


@dataclass(frozen=True)
class ImageReadRequest:
    input_image: InputImage
    transform_params: TransformParams = field(default_factory=TransformParams)
    pixels_only: bool = False
    request_id: int = field(default_factory=lambda: next(_request_ids))

    def __post_init__(self) -> None:
        if not isinstance(self.input_image, (FilePath, InMemoryBytes)):
            raise ValueError(f"request needs a FilePath or InMemoryBytes input, got {type(self.input_image).__name__}")

    @property
    def source_id(self) -> str:
        return self.input_image.source_id

    @property
    def wants_pixels_only(self) -> bool:
        return self.pixels_only or self.transform_params.pixels_only_override

    @classmethod
    def from_path(cls, path: str, params: TransformParams | None = None, pixels_only: bool = False) -> ImageReadRequest:
        return cls(FilePath(str(path)), params or TransformParams(), pixels_only)

    @classmethod
    def from_bytes(cls, data: bytes, params: TransformParams | None = None, pixels_only: bool = False) -> ImageReadRequest:
        return cls(InMemoryBytes(data), params or TransformParams(), pixels_only)


@dataclass
class ImageReadResult:
    """Terminal outcome of one request.

    Success means `error` is empty and either `raw_buffer` or `pixels` is set.
    `texture` carries whatever the configured texture builder returned.
    """

    request_id: int
    source_id: str = ""
    raw_buffer: RawImageBuffer | None = None
    pixels: np.ndarray | None = None
    texture: Any = None
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.error and (self.raw_buffer is not None or self.pixels is not None)

    @classmethod
    def failure(cls, request: ImageReadRequest, error: str) -> ImageReadResult:
        return cls(request_id=request.request_id, source_id=request.source_id, error=error or "unknown error")

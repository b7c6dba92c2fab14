from .base import Codec, ImageHeader
from .bmp import BmpCodec
from .exr import ExrCodec
from .gif import GifCodec
from .jpeg import JpegCodec
from .png import PngCodec
from .registry import CodecRegistry, ResolutionPolicy
from .tga import TgaCodec
from .tiff import TiffCodec

__all__ = [
    "BmpCodec",
    "Codec",
    "CodecRegistry",
    "ExrCodec",
    "GifCodec",
    "ImageHeader",
    "JpegCodec",
    "PngCodec",
    "ResolutionPolicy",
    "TgaCodec",
    "TiffCodec",
]

"""Playback-ready animated image produced by the GIF path."""

from __future__ import annotations

from collections.abc import Sequence

from .codecs.gif import GifFrame
from .raw_image import RawImageBuffer
from .requests import FilterMode


class GifFrameSource:
    """Decoded frames plus timing; the decoder handed to an AnimatedImage.

    Args:
        frames: Frames composited to the full canvas, in display order.
        loop_count: 0 plays forever, N > 0 repeats N extra times, None plays once.
    """

    def __init__(self, frames: Sequence[GifFrame], loop_count: int | None = 0):
        if not frames:
            raise ValueError("GifFrameSource needs at least one frame")
        first = frames[0].buffer
        for frame in frames:
            if (frame.buffer.width, frame.buffer.height) != (first.width, first.height):
                raise ValueError("all GIF frames must share the canvas size")
        self._frames = list(frames)
        self.loop_count = loop_count

    @property
    def width(self) -> int:
        return self._frames[0].buffer.width

    @property
    def height(self) -> int:
        return self._frames[0].buffer.height

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def total_duration_ms(self) -> int:
        return sum(frame.duration_ms for frame in self._frames)

    def frame(self, index: int) -> RawImageBuffer:
        return self._frames[index].buffer

    def duration_ms(self, index: int) -> int:
        return max(1, self._frames[index].duration_ms)


class AnimatedImage:
    """Animated texture stand-in: canvas size, filtering and a frame clock.

    The owner advances playback with `tick()`; `current_frame` is the buffer
    that should be on screen.
    """

    def __init__(self, width: int, height: int, filter_mode: FilterMode = FilterMode.DEFAULT):
        self.width = width
        self.height = height
        self.filter_mode = filter_mode
        self.is_srgb = True
        self.playing = True
        self._decoder: GifFrameSource | None = None
        self._frame_index = 0
        self._elapsed_ms = 0.0
        self._loops_done = 0

    @property
    def decoder(self) -> GifFrameSource | None:
        return self._decoder

    def set_decoder(self, decoder: GifFrameSource) -> None:
        if (decoder.width, decoder.height) != (self.width, self.height):
            raise ValueError(
                f"decoder size {decoder.width}x{decoder.height} does not match {self.width}x{self.height}"
            )
        self._decoder = decoder
        self.reset()

    def reset(self) -> None:
        self._frame_index = 0
        self._elapsed_ms = 0.0
        self._loops_done = 0
        self.playing = True

    @property
    def current_frame_index(self) -> int:
        return self._frame_index

    @property
    def current_frame(self) -> RawImageBuffer | None:
        if self._decoder is None:
            return None
        return self._decoder.frame(self._frame_index)

    def tick(self, delta_seconds: float) -> bool:
        """Advance playback; returns True when the visible frame changed."""
        decoder = self._decoder
        if decoder is None or not self.playing or decoder.frame_count <= 1:
            return False

        changed = False
        self._elapsed_ms += max(0.0, delta_seconds) * 1000.0
        while self._elapsed_ms >= decoder.duration_ms(self._frame_index):
            self._elapsed_ms -= decoder.duration_ms(self._frame_index)
            next_index = self._frame_index + 1
            if next_index >= decoder.frame_count:
                self._loops_done += 1
                loop_count = decoder.loop_count
                if loop_count is None or (loop_count > 0 and self._loops_done > loop_count):
                    # stay on the last frame
                    self.playing = False
                    self._elapsed_ms = 0.0
                    return changed
                next_index = 0
            self._frame_index = next_index
            changed = True
        return changed

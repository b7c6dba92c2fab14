from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from helpers.images import gif_bytes, png_bytes
from helpers.stubs import GatedPipeline
from runtime_image_loader.image_engine import (
    AnimatedImage,
    ImageIOError,
    ImageLoader,
    ImageReadRequest,
    ResourceCreationError,
    TextureFormat,
    TransformParams,
)


def _pump(loader: ImageLoader, predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        loader.tick()
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def loader():
    instance = ImageLoader()
    yield instance
    instance.shutdown()


def test_async_callback_runs_on_tick_in_owner_thread(loader: ImageLoader) -> None:
    results = []
    threads = []

    def on_completed(result):
        results.append(result)
        threads.append(threading.get_ident())

    request_id = loader.load_image_from_bytes_async(png_bytes(8, 4), on_completed)
    loader.block_till_all_requests_finished(timeout=10)
    assert results == []

    assert _pump(loader, lambda: results)
    assert results[0].request_id == request_id
    assert results[0].succeeded
    assert threads == [threading.get_ident()]
    assert loader.pending_callbacks == 0


def test_async_file_load_reports_missing_file(loader: ImageLoader, tmp_path: Path) -> None:
    missing = str(tmp_path / "nope.png")
    results = []
    loader.load_image_async(missing, results.append)

    assert _pump(loader, lambda: results)
    assert results[0].error == f"Image does not exist: {missing}"


def test_each_callback_runs_exactly_once(loader: ImageLoader, tmp_path: Path) -> None:
    path = tmp_path / "a.png"
    path.write_bytes(png_bytes())
    results = []
    ids = [loader.load_image_async(str(path), results.append) for _ in range(5)]

    assert _pump(loader, lambda: len(results) == 5)
    loader.block_till_all_requests_finished(timeout=10)
    for _ in range(3):
        loader.tick()
    assert [r.request_id for r in results] == ids


def test_failing_callback_does_not_block_others(loader: ImageLoader) -> None:
    delivered = []

    def explode(result):
        raise RuntimeError("callback bug")

    loader.load_image_from_bytes_async(png_bytes(), explode)
    loader.load_image_from_bytes_async(png_bytes(), delivered.append)

    assert _pump(loader, lambda: delivered)


def test_pixels_only_async(loader: ImageLoader, tmp_path: Path) -> None:
    path = tmp_path / "p.png"
    path.write_bytes(png_bytes(3, 2))
    results = []
    loader.load_pixels_async(str(path), results.append)

    assert _pump(loader, lambda: results)
    assert results[0].raw_buffer is None
    assert results[0].pixels.shape == (6, 4)


def test_cancel_all_suppresses_callbacks() -> None:
    pipeline = GatedPipeline()
    loader = ImageLoader(pipeline=pipeline)
    try:
        first = ImageReadRequest.from_bytes(b"x")
        pipeline.hold.add(first.request_id)
        called = []
        loader.submit(first, called.append)
        loader.load_image_from_bytes_async(b"y", called.append)
        loader.load_image_from_bytes_async(b"z", called.append)
        assert pipeline.started.wait(5)

        loader.cancel_all()
        pipeline.release()
        loader.block_till_all_requests_finished(timeout=10)
        for _ in range(5):
            loader.tick()
            time.sleep(0.01)

        assert called == []
        assert pipeline.seen == [first.request_id]
    finally:
        loader.shutdown()


def test_submit_racing_cancel_all_still_gets_its_callback(loader: ImageLoader) -> None:
    called = []
    reader = loader.reader
    cancel = reader.cancel_all
    racer = threading.Thread(target=lambda: loader.load_image_from_bytes_async(png_bytes(4, 4), called.append))

    def cancel_with_concurrent_submit() -> int:
        racer.start()
        time.sleep(0.05)
        return cancel()

    reader.cancel_all = cancel_with_concurrent_submit
    loader.cancel_all()
    racer.join(5)

    assert _pump(loader, lambda: called)
    assert called[0].succeeded
    assert loader.pending_callbacks == 0


def test_sync_load_on_owner_returns_result(loader: ImageLoader) -> None:
    result = loader.load_image_from_bytes_sync(png_bytes(6, 2))
    assert result.succeeded
    assert (result.raw_buffer.width, result.raw_buffer.height) == (6, 2)


def test_sync_load_from_worker_thread(loader: ImageLoader) -> None:
    out = {}
    t = threading.Thread(target=lambda: out.setdefault("r", loader.load_pixels_from_bytes_sync(png_bytes(2, 2))))
    t.start()
    t.join(10)
    assert out["r"].pixels.shape == (4, 4)


def test_texture_builder_receives_selected_format() -> None:
    calls = []

    def builder(source_id, buffer, pixels, texture_format, params):
        calls.append((source_id, texture_format, params.for_ui, pixels))
        return f"texture:{buffer.width}x{buffer.height}"

    loader = ImageLoader(texture_builder=builder)
    try:
        result = loader.load_image_from_bytes_sync(png_bytes(4, 2), TransformParams(for_ui=False))
        assert result.texture == "texture:4x2"
        assert calls == [("", TextureFormat.B8G8R8A8, False, None)]

        pixels = loader.load_pixels_from_bytes_sync(png_bytes())
        assert pixels.texture is None
        assert len(calls) == 1
    finally:
        loader.shutdown()


def test_texture_builder_failure_becomes_error() -> None:
    def builder(*args):
        raise ResourceCreationError("Failed to create texture: out of memory")

    loader = ImageLoader(texture_builder=builder)
    try:
        results = []
        loader.load_image_from_bytes_async(png_bytes(), results.append)
        assert _pump(loader, lambda: results)

        assert not results[0].succeeded
        assert results[0].raw_buffer is None
        assert results[0].error == "Failed to create texture: out of memory"
    finally:
        loader.shutdown()


def test_load_file_to_bytes(loader: ImageLoader, tmp_path: Path) -> None:
    path = tmp_path / "raw.bin"
    path.write_bytes(b"\x01\x02")
    assert loader.load_file_to_bytes(str(path)) == b"\x01\x02"
    with pytest.raises(ImageIOError):
        loader.load_file_to_bytes(str(tmp_path / "missing.bin"))


def test_gif_async_delivers_on_tick(loader: ImageLoader) -> None:
    images = []
    errors = []
    loader.load_gif_from_bytes(gif_bytes(), on_success=images.append, on_fail=errors.append)

    assert _pump(loader, lambda: images or errors)
    assert errors == []
    assert isinstance(images[0], AnimatedImage)
    assert images[0].decoder.frame_count == 3


def test_gif_sync_on_owner_delivers_before_return(loader: ImageLoader) -> None:
    errors = []
    reader = loader.load_gif_from_bytes(b"GIF89a broken", on_fail=errors.append, synchronous=True)
    assert reader.done
    assert len(errors) == 1 and errors[0]

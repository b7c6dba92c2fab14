from __future__ import annotations

from pathlib import Path

from helpers.images import gif_bytes, png_bytes
from runtime_image_loader.main import run


def test_run_prints_summary_per_file(tmp_path: Path, capsys) -> None:
    png = tmp_path / "a.png"
    png.write_bytes(png_bytes(8, 4))
    gif = tmp_path / "b.gif"
    gif.write_bytes(gif_bytes())

    code = run([str(png), str(gif), "--percent", "50"])

    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0] == f"{png}: OK 4x2 BGRA8 srgb"
    assert out[1].startswith(f"{gif}: OK 6x4 GIF frames=3")


def test_run_reports_failures(tmp_path: Path, capsys) -> None:
    missing = tmp_path / "missing.png"

    code = run([str(missing), "--sync"])

    assert code == 1
    assert capsys.readouterr().out.strip() == f"{missing}: ERROR Image does not exist: {missing}"


def test_run_pixels_only(tmp_path: Path, capsys) -> None:
    png = tmp_path / "a.png"
    png.write_bytes(png_bytes(3, 3))

    assert run([str(png), "--pixels-only"]) == 0
    assert capsys.readouterr().out.strip() == f"{png}: OK pixels=9"


def test_run_routes_gif_by_header_not_extension(tmp_path: Path, capsys) -> None:
    gif = tmp_path / "anim.png"
    gif.write_bytes(gif_bytes())
    png = tmp_path / "still.gif"
    png.write_bytes(png_bytes(8, 4))

    assert run([str(gif), str(png), "--sync"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith(f"{gif}: OK 6x4 GIF frames=3")
    assert out[1] == f"{png}: OK 8x4 BGRA8 srgb"

from __future__ import annotations

import os
import zipfile

from PIL import Image

from smartcrop.batch_exporter import assign_output_names, export_batch, iter_image_files, write_zip

from .conftest import make_rect_image


def _write_inputs(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    make_rect_image(rects=[(50, 50, 100, 100)]).save(src / "a.png")
    make_rect_image().save(src / "b.png")
    (src / "broken.png").write_bytes(b"definitely not a png")
    (src / "notes.txt").write_text("skip me")
    return src


def test_iter_image_files_filters_extensions(tmp_path):
    src = _write_inputs(tmp_path)
    found = [os.path.basename(p) for p in iter_image_files([str(src)], [".png"])]
    assert found == ["a.png", "b.png", "broken.png"]


def test_sequential_export_continues_past_failures(tmp_path):
    src = _write_inputs(tmp_path)
    out = tmp_path / "out"
    paths = list(iter_image_files([str(src)], [".png"]))

    results, errors = export_batch(paths, str(out), prefix="crop_", workers=1)

    assert len(results) == 2
    assert len(errors) == 1
    assert errors[0].startswith(str(src / "broken.png"))

    by_name = {os.path.basename(r["path"]): r for r in results}
    assert by_name["a.png"]["detected"] is True
    assert by_name["a.png"]["box"] == {"x": 46, "y": 46, "w": 107, "h": 107}
    assert by_name["b.png"]["detected"] is False

    with Image.open(out / "crop_a.png") as im:
        assert im.size == (107, 107)
    with Image.open(out / "crop_b.png") as im:
        assert im.size == (200, 200)


def test_parallel_export_matches_sequential(tmp_path):
    src = _write_inputs(tmp_path)
    paths = list(iter_image_files([str(src)], [".png"]))

    seq_results, seq_errors = export_batch(paths, str(tmp_path / "seq"), workers=1)
    par_results, par_errors = export_batch(paths, str(tmp_path / "par"), workers=2)

    assert [r["box"] for r in par_results] == [r["box"] for r in seq_results]
    assert len(par_errors) == len(seq_errors) == 1


def test_enhanced_export_is_png(tmp_path):
    src = _write_inputs(tmp_path)
    results, _ = export_batch([str(src / "a.png")], str(tmp_path / "out"), enhance=True, workers=1)
    assert results[0]["enhanced"] is True
    with Image.open(results[0]["output_path"]) as im:
        assert im.format == "PNG"
        assert im.size == (214, 214)


def test_write_zip_bundles_outputs(tmp_path):
    src = _write_inputs(tmp_path)
    paths = list(iter_image_files([str(src)], [".png"]))
    results, _ = export_batch(paths, str(tmp_path / "out"), prefix="crop_", workers=1)

    zip_path = write_zip(results, str(tmp_path / "bundle.zip"))
    with zipfile.ZipFile(zip_path) as archive:
        assert sorted(archive.namelist()) == ["crop_a.png", "crop_b.png"]


def test_assign_output_names_suffixes_repeated_stems():
    paths = ["x/a.png", "y/a.png", "z/A.jpg", "z/b.png", "w/a_1.png"]
    assert assign_output_names(paths, prefix="crop_") == [
        ("x/a.png", "crop_a"),
        ("y/a.png", "crop_a_1"),
        ("z/A.jpg", "crop_A_2"),
        ("z/b.png", "crop_b"),
        ("w/a_1.png", "crop_a_1_1"),
    ]


def test_same_stem_in_sibling_dirs_exports_both(tmp_path):
    for sub, size in (("x", (200, 200)), ("y", (300, 300))):
        (tmp_path / sub).mkdir()
        make_rect_image(size=size, rects=[(50, 50, 100, 100)]).save(tmp_path / sub / "a.png")
    paths = list(iter_image_files([str(tmp_path / "x"), str(tmp_path / "y")], [".png"]))

    results, errors = export_batch(paths, str(tmp_path / "out"), workers=1)

    assert errors == []
    outputs = [r["output_path"] for r in results]
    assert len(set(outputs)) == 2
    assert sorted(os.listdir(tmp_path / "out")) == ["a.png", "a_1.png"]

    zip_path = write_zip(results, str(tmp_path / "bundle.zip"))
    with zipfile.ZipFile(zip_path) as archive:
        assert sorted(archive.namelist()) == ["a.png", "a_1.png"]


def test_parallel_export_keeps_same_stem_outputs_apart(tmp_path):
    for sub in ("x", "y"):
        (tmp_path / sub).mkdir()
        make_rect_image(rects=[(50, 50, 100, 100)]).save(tmp_path / sub / "a.png")
    paths = [str(tmp_path / "x" / "a.png"), str(tmp_path / "y" / "a.png")]

    results, errors = export_batch(paths, str(tmp_path / "out"), workers=2)

    assert errors == []
    assert sorted(os.path.basename(r["output_path"]) for r in results) == ["a.png", "a_1.png"]

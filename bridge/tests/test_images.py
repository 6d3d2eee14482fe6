import base64
import io
import os
import struct
import time

import pytest
from PIL import Image

from bridge.errors import InputError, ProcessingError
from bridge.images import (
    ImagePreprocessor,
    TempStoreReclaimer,
    decode_base64_image,
    normalize_image,
)


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_decode_strips_data_uri_prefix() -> None:
    encoded = base64.b64encode(b"hello").decode("ascii")
    assert decode_base64_image(f"data:image/png;base64,{encoded}") == b"hello"


def test_decode_tolerates_whitespace_and_missing_padding() -> None:
    encoded = base64.b64encode(b"hello!!").decode("ascii").rstrip("=")
    assert decode_base64_image(f"{encoded[:4]}\n{encoded[4:]}") == b"hello!!"


@pytest.mark.parametrize("raw", ["", "   ", "data:image/png;base64,"])
def test_decode_rejects_empty_payload(raw: str) -> None:
    with pytest.raises(InputError, match="empty"):
        decode_base64_image(raw)


def test_decode_rejects_invalid_base64() -> None:
    with pytest.raises(InputError):
        decode_base64_image("!!!not-base64$$$")


def test_large_image_is_bounded_without_distortion(image_factory) -> None:
    data = base64.b64decode(image_factory(size=(3200, 1600)))
    result = _open(normalize_image(data))
    assert result.format == "JPEG"
    assert result.size == (1600, 800)


def test_small_image_is_not_upscaled(image_factory) -> None:
    data = base64.b64decode(image_factory(size=(120, 80)))
    assert _open(normalize_image(data)).size == (120, 80)


def test_alpha_image_is_converted_to_rgb_jpeg(image_factory) -> None:
    data = base64.b64decode(image_factory(mode="RGBA"))
    result = _open(normalize_image(data))
    assert result.mode == "RGB"


def test_exif_orientation_is_applied(image_factory) -> None:
    exif = Image.Exif()
    exif[0x0112] = 6
    data = base64.b64decode(image_factory(size=(40, 20), image_format="JPEG", exif=exif))
    assert _open(normalize_image(data)).size == (20, 40)


def test_non_image_bytes_are_input_errors() -> None:
    with pytest.raises(InputError):
        normalize_image(b"definitely not an image")


def test_prepare_persists_unique_jpeg(tmp_path, image_base64) -> None:
    preprocessor = ImagePreprocessor(str(tmp_path / "scans"), max_image_bytes=1024 * 1024)
    raw = image_base64
    first = preprocessor.prepare(raw, "face")
    second = preprocessor.prepare(raw, "face")

    assert first.mime_type == "image/jpeg"
    assert first.path != second.path
    assert os.path.basename(first.path).startswith("face-")
    assert first.path.endswith(".jpg")
    with open(first.path, "rb") as handle:
        assert handle.read() == first.data


def test_prepare_rejects_oversized_payload(tmp_path, image_base64) -> None:
    preprocessor = ImagePreprocessor(str(tmp_path), max_image_bytes=16)
    with pytest.raises(InputError):
        preprocessor.prepare(image_base64, "food")
    assert os.listdir(tmp_path) == []


def test_prepare_leaves_no_file_on_bad_input(tmp_path) -> None:
    preprocessor = ImagePreprocessor(str(tmp_path), max_image_bytes=1024 * 1024)
    with pytest.raises(InputError):
        preprocessor.prepare(base64.b64encode(b"garbage").decode("ascii"), "food")
    assert os.listdir(tmp_path) == []


def test_prepare_write_failure_is_processing_error(tmp_path, monkeypatch, image_base64) -> None:
    preprocessor = ImagePreprocessor(str(tmp_path), max_image_bytes=1024 * 1024)
    monkeypatch.setattr(preprocessor, "_unique_path", lambda prefix: str(tmp_path / "missing" / "x.jpg"))
    with pytest.raises(ProcessingError):
        preprocessor.prepare(image_base64, "face")


def test_discard_tolerates_missing_file(tmp_path) -> None:
    preprocessor = ImagePreprocessor(str(tmp_path), max_image_bytes=1024)
    preprocessor.discard(str(tmp_path / "gone.jpg"))


def _touch(path, age_seconds: float, now: float) -> None:
    path.write_bytes(b"x")
    os.utime(path, (now - age_seconds, now - age_seconds))


def test_sweep_removes_only_expired_files(tmp_path) -> None:
    now = time.time()
    old_file = tmp_path / "face-old.jpg"
    new_file = tmp_path / "face-new.jpg"
    nested = tmp_path / "nested"
    nested.mkdir()
    os.utime(nested, (now - 10_000, now - 10_000))
    _touch(old_file, 900, now)
    _touch(new_file, 30, now)

    reclaimer = TempStoreReclaimer(str(tmp_path), interval_seconds=600, retention_seconds=600)
    assert reclaimer.sweep(now=now) == 1
    assert not old_file.exists()
    assert new_file.exists()
    assert nested.exists()


def test_sweep_continues_after_per_file_failure(tmp_path, monkeypatch) -> None:
    now = time.time()
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        _touch(tmp_path / name, 900, now)

    real_remove = os.remove

    def flaky_remove(path):
        if path.endswith("b.jpg"):
            raise PermissionError("locked")
        real_remove(path)

    monkeypatch.setattr("bridge.images.os.remove", flaky_remove)
    reclaimer = TempStoreReclaimer(str(tmp_path), interval_seconds=600, retention_seconds=600)
    assert reclaimer.sweep(now=now) == 2
    assert sorted(os.listdir(tmp_path)) == ["b.jpg"]


def test_sweep_on_missing_directory_is_noop(tmp_path) -> None:
    reclaimer = TempStoreReclaimer(str(tmp_path / "absent"), interval_seconds=1, retention_seconds=1)
    assert reclaimer.sweep() == 0


def test_background_loop_sweeps_and_stops(tmp_path) -> None:
    old_file = tmp_path / "stale.jpg"
    _touch(old_file, 120, time.time())
    reclaimer = TempStoreReclaimer(str(tmp_path), interval_seconds=0.05, retention_seconds=60)
    reclaimer.start()
    try:
        deadline = time.time() + 5
        while old_file.exists() and time.time() < deadline:
            time.sleep(0.02)
    finally:
        reclaimer.stop()
    assert not old_file.exists()


def test_decoder_crash_is_input_error(monkeypatch) -> None:
    def broken_open(fp):
        raise struct.error("unpack requires a buffer of 4 bytes")

    monkeypatch.setattr("bridge.images.Image.open", broken_open)
    with pytest.raises(InputError):
        normalize_image(b"\x89PNG truncated")


def test_bad_exif_is_processing_error(monkeypatch, image_factory) -> None:
    def broken_transpose(image):
        raise KeyError(0x0112)

    monkeypatch.setattr("bridge.images.ImageOps.exif_transpose", broken_transpose)
    with pytest.raises(ProcessingError):
        normalize_image(base64.b64decode(image_factory()))

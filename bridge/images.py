from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import re
import struct
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from bridge.errors import InputError, ProcessingError

LOGGER = logging.getLogger("bridge.images")

MAX_IMAGE_DIMENSION = 1600
JPEG_QUALITY = 82
OUTPUT_MIME_TYPE = "image/jpeg"
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    mime_type: str
    path: str
    created_at: datetime


def decode_base64_image(raw: str) -> bytes:
    payload = raw[raw.index(",") + 1 :] if "," in raw else raw
    payload = _WHITESPACE_RE.sub("", payload)
    if not payload:
        raise InputError("image_base64 is empty")
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputError("image_base64 is not valid base64") from exc
    if not decoded:
        raise InputError("image_base64 is empty")
    return decoded


def _open_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except Image.DecompressionBombError as exc:
        raise InputError("Image dimensions are too large") from exc
    except (
        UnidentifiedImageError,
        OSError,
        SyntaxError,
        ValueError,
        struct.error,
        IndexError,
        TypeError,
        KeyError,
    ) as exc:
        raise InputError("image_base64 is not a supported image") from exc
    return image


def normalize_image(data: bytes, max_dimension: int = MAX_IMAGE_DIMENSION, quality: int = JPEG_QUALITY) -> bytes:
    """Auto-rotate, shrink to fit a max_dimension square and re-encode as JPEG.

    Smaller images keep their size; only EXIF orientation is applied to them.
    """
    image = _open_image(data)
    try:
        image = ImageOps.exif_transpose(image)
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        image.save(out, format="JPEG", quality=quality, optimize=True)
    except Exception as exc:
        raise ProcessingError("Image processing failed") from exc
    return out.getvalue()


class ImagePreprocessor:
    def __init__(self, temp_dir: str, max_image_bytes: int) -> None:
        self.temp_dir = temp_dir
        self.max_image_bytes = max_image_bytes
        os.makedirs(self.temp_dir, exist_ok=True)

    def _unique_path(self, prefix: str) -> str:
        filename = f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex}.jpg"
        return os.path.join(self.temp_dir, filename)

    def _write(self, path: str, data: bytes) -> None:
        try:
            handle = open(path, "xb")
        except OSError as exc:
            raise ProcessingError("Failed to store scan image") from exc
        try:
            with handle:
                handle.write(data)
        except OSError as exc:
            self.discard(path)
            raise ProcessingError("Failed to store scan image") from exc

    def prepare(self, raw_base64: str, prefix: str) -> PreparedImage:
        decoded = decode_base64_image(raw_base64)
        if len(decoded) > self.max_image_bytes:
            raise InputError("image_base64 exceeds the maximum image size")
        encoded = normalize_image(decoded)
        os.makedirs(self.temp_dir, exist_ok=True)
        path = self._unique_path(prefix)
        self._write(path, encoded)
        LOGGER.debug(
            "image_prepared prefix=%s input_bytes=%s output_bytes=%s path=%s",
            prefix,
            len(decoded),
            len(encoded),
            path,
        )
        return PreparedImage(
            data=encoded,
            mime_type=OUTPUT_MIME_TYPE,
            path=path,
            created_at=datetime.now(timezone.utc),
        )

    def discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            LOGGER.warning("Failed to discard temp image path=%s error=%s", path, exc)


class TempStoreReclaimer:
    def __init__(self, temp_dir: str, interval_seconds: float, retention_seconds: float) -> None:
        self.temp_dir = temp_dir
        self.interval_seconds = interval_seconds
        self.retention_seconds = retention_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep(self, now: Optional[float] = None) -> int:
        cutoff = (time.time() if now is None else now) - self.retention_seconds
        try:
            entries = list(os.scandir(self.temp_dir))
        except FileNotFoundError:
            return 0
        removed = 0
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime > cutoff:
                    continue
                os.remove(entry.path)
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                LOGGER.warning("temp_sweep skipped path=%s error=%s", entry.path, exc)
        if removed:
            LOGGER.info("temp_sweep dir=%s removed=%s", self.temp_dir, removed)
        return removed

    def _loop(self) -> None:
        LOGGER.info(
            "Starting temp sweep loop dir=%s interval=%ss retention=%ss",
            self.temp_dir,
            self.interval_seconds,
            self.retention_seconds,
        )
        while not self._stop.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception as exc:
                LOGGER.warning("Temp sweep failed: %s", exc)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="temp-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

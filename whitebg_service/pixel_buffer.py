"""
Image decode/encode boundary.

Source images arrive as raw bytes, data URLs, http(s) URLs or file paths and
are rasterised into an RGBA `PixelGrid`. Results are written back out in a
lossless, alpha-capable format so transparency survives the round trip.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from io import BytesIO
import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image
import requests

from .errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

ImageHandle = Union[bytes, bytearray, str, Path]

ALPHA_FORMATS = {
    "PNG": "image/png",
    "WEBP": "image/webp",
    "TIFF": "image/tiff",
}


@dataclass
class PixelGrid:
    pixels: np.ndarray  # (H, W, 4) uint8, row-major

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"PixelGrid expects an (H, W, 4) array, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"PixelGrid expects uint8 channels, got {self.pixels.dtype}")
        if self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0:
            raise ValueError("PixelGrid dimensions must be non-zero")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def copy(self) -> "PixelGrid":
        return PixelGrid(self.pixels.copy())


def mime_type_for(image_format: str) -> str:
    try:
        return ALPHA_FORMATS[image_format.upper()]
    except KeyError:
        raise ValueError(f"Unsupported output format without alpha support: {image_format}") from None


def to_data_url(data: bytes, image_format: str = "PNG") -> str:
    """Wrap encoded image bytes into a `data:` URL usable for display or download."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type_for(image_format)};base64,{encoded}"


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise DecodeError("Malformed data URL")
    if not header.endswith(";base64"):
        raise DecodeError("Only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("Invalid base64 payload in data URL") from exc


def _download(url: str, timeout_seconds: int) -> bytes:
    try:
        resp = requests.get(url, timeout=(5, timeout_seconds))
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DecodeError(f"Could not download image from {url}") from exc
    return resp.content


def load_image_bytes(handle: ImageHandle, timeout_seconds: int = 30) -> bytes:
    """
    Resolve an image handle into encoded bytes.

    Strings are treated as data URLs, http(s) URLs, or filesystem paths in
    that order of precedence.
    """
    if isinstance(handle, (bytes, bytearray)):
        return bytes(handle)
    if isinstance(handle, str):
        if handle.startswith("data:"):
            return _decode_data_url(handle)
        if handle.startswith(("http://", "https://")):
            return _download(handle, timeout_seconds)
        handle = Path(handle)
    try:
        return handle.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read image file {handle}") from exc


def decode_image(handle: ImageHandle, timeout_seconds: int = 30) -> PixelGrid:
    """
    Decode an image handle into an RGBA `PixelGrid`.

    Palette and greyscale inputs are converted so every grid carries four
    8-bit channels. Multi-frame images contribute their first frame only.
    """
    image_bytes = load_image_bytes(handle, timeout_seconds=timeout_seconds)
    if not image_bytes:
        raise DecodeError("Empty image data")
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            image.seek(0)
            rgba = image.convert("RGBA")
    except Exception as exc:  # noqa: BLE001
        raise DecodeError("Invalid image data") from exc

    width, height = rgba.size
    if width == 0 or height == 0:
        raise DecodeError("Image has zero width or height")

    pixels = np.array(rgba, dtype=np.uint8)
    logger.debug("decode: %dx%d source mode=%s", width, height, rgba.mode)
    return PixelGrid(pixels)


def encode_image(grid: PixelGrid, image_format: str = "PNG") -> bytes:
    """Encode a grid losslessly, keeping per-pixel alpha intact."""
    image_format = image_format.upper()
    mime_type_for(image_format)

    save_kwargs = {"format": image_format}
    if image_format == "WEBP":
        save_kwargs.update(lossless=True, exact=True)
    elif image_format == "TIFF":
        save_kwargs["compression"] = "tiff_deflate"

    try:
        out = Image.fromarray(grid.pixels)
        buf = BytesIO()
        out.save(buf, **save_kwargs)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Failed to encode {image_format} output") from exc
    return buf.getvalue()

"""
High-level background removal pipeline.

`remove_background` is the main entry point used by the HTTP API, the local
script and the batch worker. Orchestration is strictly sequential:
handle in -> decode -> border mask -> alpha composite -> encode -> bytes out.

Callers that want to keep going with the unprocessed image on failure should
use `try_remove_background` and pick their own fallback from the result.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import time
import uuid
from typing import Optional, Tuple

import cv2
import numpy as np

from . import config
from .compositor import apply_background_mask
from .errors import BackgroundRemovalError
from .mask_builder import Tolerance, build_background_mask, normalize_tolerance
from .pixel_buffer import ImageHandle, decode_image, encode_image, mime_type_for, to_data_url

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    image_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    error: Optional[BackgroundRemovalError] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image_bytes is not None

    def image_or(self, fallback):
        """Processed bytes on success, otherwise `fallback` (usually the source image)."""
        return self.image_bytes if self.ok else fallback


def _maybe_dump_debug(mask: np.ndarray, debug_dir: Path) -> None:
    """Optionally write the background mask when DEBUG is enabled; one file per call."""
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        mask_path = debug_dir / f"background_mask_{uuid.uuid4().hex}.png"
        cv2.imwrite(str(mask_path), mask.astype(np.uint8) * 255)
        logger.debug("pipeline: wrote debug mask to %s", mask_path)
    except Exception as exc:  # noqa: BLE001
        logger.warning("pipeline: failed to write debug outputs: %s", exc)


def _run_pipeline(
    image: ImageHandle,
    tolerance: Optional[Tolerance],
    feather_strength: Optional[float],
    settings: config.Settings,
) -> Tuple[bytes, int, int]:
    """Decode, mask, composite and encode; returns the output bytes and its (width, height)."""
    tolerance = settings.tolerance if tolerance is None else tolerance
    feather_strength = settings.feather_strength if feather_strength is None else feather_strength
    normalize_tolerance(tolerance)
    if not 0.0 <= feather_strength <= 1.0:
        raise ValueError("feather_strength must be between 0 and 1")

    started = time.perf_counter()
    grid = decode_image(image, timeout_seconds=settings.request_timeout_seconds)
    mask = build_background_mask(grid, tolerance=tolerance, strategy=settings.mask_strategy)
    result = apply_background_mask(grid, mask, feather_strength=feather_strength)

    if settings.debug:
        _maybe_dump_debug(mask, Path(settings.debug_output_dir))

    out = encode_image(result, image_format=settings.output_format)
    logger.debug(
        "pipeline: %dx%d tolerance=%s background=%.2f%% format=%s took %.1fms",
        grid.width,
        grid.height,
        tolerance,
        100.0 * float(mask.mean()),
        settings.output_format,
        (time.perf_counter() - started) * 1000.0,
    )
    return out, grid.width, grid.height


def remove_background(
    image: ImageHandle,
    tolerance: Optional[Tolerance] = None,
    *,
    feather_strength: Optional[float] = None,
    settings: Optional[config.Settings] = None,
) -> bytes:
    """
    Full pipeline from an image handle to lossless RGBA bytes.

    Tolerance and feather strength are checked before the image is touched.

    Raises:
        DecodeError: the source cannot be read; no pixel work is attempted.
        EncodeError: the composited grid cannot be serialised.
        ValueError: tolerance or feather strength is malformed or out of range.
    """
    settings = settings or config.get_settings()
    out, _, _ = _run_pipeline(image, tolerance, feather_strength, settings)
    return out


def remove_background_to_data_url(
    image: ImageHandle,
    tolerance: Optional[Tolerance] = None,
    *,
    feather_strength: Optional[float] = None,
    settings: Optional[config.Settings] = None,
) -> str:
    """Same as `remove_background` but returns a displayable `data:` URL."""
    settings = settings or config.get_settings()
    out = remove_background(image, tolerance, feather_strength=feather_strength, settings=settings)
    return to_data_url(out, settings.output_format)


def try_remove_background(
    image: ImageHandle,
    tolerance: Optional[Tolerance] = None,
    *,
    feather_strength: Optional[float] = None,
    settings: Optional[config.Settings] = None,
) -> RemovalResult:
    """
    Run the pipeline and report success or failure instead of raising.

    Only decode/encode failures are captured; configuration mistakes still
    raise so they are not silently masked by a fallback.
    """
    settings = settings or config.get_settings()
    try:
        out, width, height = _run_pipeline(image, tolerance, feather_strength, settings)
    except BackgroundRemovalError as exc:
        logger.warning("pipeline: background removal failed: %s", exc)
        return RemovalResult(error=exc)
    return RemovalResult(
        image_bytes=out,
        mime_type=mime_type_for(settings.output_format),
        width=width,
        height=height,
    )

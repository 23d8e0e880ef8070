"""Apply a background mask to a pixel grid's alpha channel."""

from __future__ import annotations

import logging

import cv2
import numpy as np

from .pixel_buffer import PixelGrid

logger = logging.getLogger(__name__)

_CROSS_KERNEL = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))


def feather_band(mask: np.ndarray) -> np.ndarray:
    """Foreground pixels 4-adjacent to the background mask."""
    if not mask.any():
        return np.zeros_like(mask, dtype=bool)
    grown = cv2.dilate(mask.astype(np.uint8), _CROSS_KERNEL, iterations=1).astype(bool)
    return grown & ~mask


def apply_background_mask(
    grid: PixelGrid,
    mask: np.ndarray,
    feather_strength: float = 0.0,
) -> PixelGrid:
    """
    Return a new grid with masked pixels fully transparent.

    Colour channels are kept as-is so the output can be re-composited later.
    Unmasked pixels keep their source alpha; with `feather_strength` > 0 the
    one-pixel band bordering the mask is faded by that fraction. Alpha is
    only ever lowered here.
    """
    if mask.shape != (grid.height, grid.width):
        raise ValueError(
            f"Mask shape {mask.shape} does not match grid {(grid.height, grid.width)}"
        )
    feather_strength = float(np.clip(feather_strength, 0.0, 1.0))

    out = grid.copy()
    alpha = out.pixels[..., 3]
    alpha[mask] = 0

    if feather_strength > 0:
        band = feather_band(mask)
        if np.any(band):
            faded = alpha[band].astype(np.float32) * (1.0 - feather_strength)
            alpha[band] = np.minimum(alpha[band], np.round(faded)).astype(np.uint8)
            logger.debug("composite: feathered %d edge pixels by %.2f", int(band.sum()), feather_strength)

    return out

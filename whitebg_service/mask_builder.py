"""
Border-connected background mask.

A pixel is background when it is near-white *and* reachable from the image
border through a 4-connected path of other near-white pixels. Near-white
pixels enclosed by the character (eye highlights, teeth, white fabric) are
never reached and stay foreground.
"""

from __future__ import annotations

from collections import deque
import logging
from typing import Iterator, Sequence, Union

import cv2
import numpy as np

from .pixel_buffer import PixelGrid

logger = logging.getLogger(__name__)

# 255 - 15 = 240 per channel: drops light-gray antialiasing noise from the
# generated backdrop while pale skin and cream fabric stay foreground.
DEFAULT_TOLERANCE = 15

MASK_STRATEGIES = {"labels", "queue"}

Tolerance = Union[int, float, Sequence[int]]


def _tolerance_value(value) -> int:
    if isinstance(value, (bool, np.bool_, str, bytes)):
        raise ValueError(f"Tolerance values must be integers, got {value!r}")
    if isinstance(value, (float, np.floating)):
        if not float(value).is_integer():
            raise ValueError(f"Tolerance values must be whole numbers, got {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Tolerance values must be integers, got {value!r}") from exc


def normalize_tolerance(tolerance: Tolerance) -> np.ndarray:
    """
    Return the per-channel lower bound a pixel must reach to count as near-white.

    Accepts a scalar applied to R, G and B or an (R, G, B) triple. Whole-number
    floats are accepted; strings, fractions and other shapes are rejected.
    """
    if isinstance(tolerance, (str, bytes)):
        raise ValueError("Tolerance must be a number or an (R, G, B) triple")
    if isinstance(tolerance, (bool, np.bool_, int, float, np.integer, np.floating)):
        values = [_tolerance_value(tolerance)] * 3
    else:
        try:
            values = [_tolerance_value(v) for v in tolerance]
        except TypeError as exc:
            raise ValueError("Tolerance must be a number or an (R, G, B) triple") from exc
        if len(values) != 3:
            raise ValueError("Per-channel tolerance must have exactly three values")
    if any(v < 0 or v > 255 for v in values):
        raise ValueError("Tolerance values must be within 0..255")
    return np.array([255 - v for v in values], dtype=np.uint8)


def near_white_mask(pixels: np.ndarray, tolerance: Tolerance = DEFAULT_TOLERANCE) -> np.ndarray:
    """Boolean (H, W) array marking pixels whose R, G and B all pass the tolerance test."""
    floor = normalize_tolerance(tolerance)
    return np.all(pixels[..., :3] >= floor, axis=-1)


def is_near_white(color: Sequence[int], tolerance: Tolerance = DEFAULT_TOLERANCE) -> bool:
    floor = normalize_tolerance(tolerance)
    r, g, b = (int(c) for c in color[:3])
    return r >= floor[0] and g >= floor[1] and b >= floor[2]


def _border_indices(height: int, width: int) -> Iterator[int]:
    """Flat indices of the four border rows/columns; corners may repeat."""
    total = height * width
    yield from range(width)
    yield from range(total - width, total)
    yield from range(0, total, width)
    yield from range(width - 1, total, width)


def _flood_from_border_queue(candidates: np.ndarray) -> np.ndarray:
    """Breadth-first fill with an explicit frontier; each pixel is queued at most once."""
    height, width = candidates.shape
    total = height * width
    open_cells = candidates.ravel().tolist()
    visited = bytearray(total)
    frontier = deque()

    for idx in _border_indices(height, width):
        if open_cells[idx] and not visited[idx]:
            visited[idx] = 1
            frontier.append(idx)

    while frontier:
        idx = frontier.popleft()
        x = idx % width
        neighbours = []
        if x > 0:
            neighbours.append(idx - 1)
        if x < width - 1:
            neighbours.append(idx + 1)
        if idx >= width:
            neighbours.append(idx - width)
        if idx + width < total:
            neighbours.append(idx + width)
        for n in neighbours:
            if open_cells[n] and not visited[n]:
                visited[n] = 1
                frontier.append(n)

    return np.frombuffer(bytes(visited), dtype=np.uint8).astype(bool).reshape(height, width)


def _flood_from_border_labels(candidates: np.ndarray) -> np.ndarray:
    """Label 4-connected near-white components and keep those touching the border."""
    _, labels = cv2.connectedComponents(candidates.astype(np.uint8), connectivity=4)
    border = np.concatenate((labels[0, :], labels[-1, :], labels[:, 0], labels[:, -1]))
    border_labels = np.unique(border)
    # Label 0 is the non-white remainder, never background.
    border_labels = border_labels[border_labels != 0]
    if border_labels.size == 0:
        return np.zeros(candidates.shape, dtype=bool)
    return np.isin(labels, border_labels)


def build_background_mask(
    grid: PixelGrid,
    tolerance: Tolerance = DEFAULT_TOLERANCE,
    strategy: str = "labels",
) -> np.ndarray:
    """
    Classify every pixel of `grid` as background (True) or foreground (False).

    Seeds are the near-white pixels on the four border rows/columns; the fill
    expands only up/down/left/right, so white regions touching the background
    diagonally stay separate. Both strategies yield the same mask:

    - ``labels``: OpenCV connected-component labelling, fast on large images.
    - ``queue``: explicit FIFO frontier over a flat visited buffer.
    """
    strategy = strategy.lower()
    if strategy not in MASK_STRATEGIES:
        raise ValueError(f"Unknown mask strategy '{strategy}', expected one of labels|queue")

    candidates = near_white_mask(grid.pixels, tolerance)
    if not candidates.any():
        logger.debug("mask: no near-white pixels, empty mask")
        return np.zeros(candidates.shape, dtype=bool)

    if strategy == "queue":
        mask = _flood_from_border_queue(candidates)
    else:
        mask = _flood_from_border_labels(candidates)

    logger.debug(
        "mask: strategy=%s candidates=%d background=%d of %d",
        strategy,
        int(candidates.sum()),
        int(mask.sum()),
        mask.size,
    )
    return mask

"""
Batch/queue worker.

Jobs pulled from a queue (Redis, Kafka, a DB table) are independent images,
so they are fanned out over a thread pool and reuse the shared pipeline.
Each item owns its own pixel buffers; no locking is needed.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from . import config
from .mask_builder import Tolerance
from .pipeline import RemovalResult, try_remove_background
from .pixel_buffer import ImageHandle

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    image: ImageHandle
    tolerance: Optional[Tolerance] = None
    feather_strength: Optional[float] = None


def process_batch(
    items: Iterable[BatchItem],
    max_workers: Optional[int] = None,
    settings: Optional[config.Settings] = None,
) -> List[RemovalResult]:
    """
    Process a batch of images concurrently.

    Returns one `RemovalResult` per item, in input order. A failing item is
    reported in its own result and never aborts the rest of the batch.
    """
    settings = settings or config.get_settings()
    items = list(items)
    if not items:
        return []
    workers = min(max_workers or settings.max_batch_workers, len(items))
    logger.info("Processing batch of %d images with %d workers", len(items), workers)

    def _run(item: BatchItem) -> RemovalResult:
        return try_remove_background(
            item.image,
            item.tolerance,
            feather_strength=item.feather_strength,
            settings=settings,
        )

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_run, items))

    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.warning("Batch finished with %d/%d failures", failed, len(results))
    return results

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List

from .base import SearchClient
from .schema import Batch, BatchResult, IndexOperation

logger = logging.getLogger(__name__)

# Upper bound of one bulk request body (AWS Elasticsearch rejects > 10 MiB)
MAX_BATCH_BYTES = 10 * 1024 * 1024


def pack(operations: Iterable[IndexOperation], max_bytes: int = MAX_BATCH_BYTES) -> List[Batch]:
    """
    Greedily split operations, in order, into bulk-sized batches.

    Only document bodies are measured; the running total is doubled to leave
    room for the action line sent ahead of every body. An operation that
    would push the doubled total past `max_bytes` starts the next batch, so a
    batch only overshoots when it holds a single oversized operation.
    """
    batches: List[Batch] = []
    current: List[IndexOperation] = []
    total = 0
    for op in operations:
        size = op.payload_size()
        if current and (total + size) * 2 > max_bytes:
            batches.append(Batch(number=len(batches), operations=current, payload_bytes=total))
            current, total = [], 0
        current.append(op)
        total += size
    if current:
        batches.append(Batch(number=len(batches), operations=current, payload_bytes=total))
    return batches


def _submit_one(client: SearchClient, batch: Batch) -> BatchResult:
    try:
        client.bulk(batch)
    except Exception as e:
        # Recorded, never raised: the remaining batches must still be sent
        logger.error("Bulk request %d failed: %s", batch.number, e, extra={"batch": batch.number})
        return BatchResult(number=batch.number, operations=len(batch.operations), ok=False, error=str(e))
    logger.debug(
        "Bulk request %d ok (%d operations)",
        batch.number,
        len(batch.operations),
        extra={"batch": batch.number},
    )
    return BatchResult(number=batch.number, operations=len(batch.operations), ok=True)


def submit_batches(client: SearchClient, batches: List[Batch], workers: int = 1) -> List[BatchResult]:
    """Send every batch, even after failures; results come back in batch order."""
    if workers <= 1 or len(batches) <= 1:
        return [_submit_one(client, b) for b in batches]

    results: List[BatchResult] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_submit_one, client, b) for b in batches]
        for future in as_completed(futures):
            results.append(future.result())
    results.sort(key=lambda r: r.number)
    return results

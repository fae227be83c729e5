from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .base import IndexLifecycleError, SearchClient
from .schema import INDEX_PROPERTIES

logger = logging.getLogger(__name__)


def ensure_clean_index(
    client: SearchClient, index: str, properties: Optional[Dict[str, Any]] = None
) -> None:
    """
    Drop `index` if it exists and create it empty with the section mapping.

    Any failure is fatal for the run; nothing must be written to an index
    whose mapping is unknown.
    """
    properties = properties or INDEX_PROPERTIES
    try:
        if client.exists(index):
            logger.info("Index (%s) exists, deleting index", index)
            client.delete(index)
        logger.info("Creating index: %s", index)
        client.create(index, properties)
    except Exception as e:
        raise IndexLifecycleError(f"Could not rebuild index {index}: {e}") from e

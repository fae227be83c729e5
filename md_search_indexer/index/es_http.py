# index/es_http.py
from __future__ import annotations

import os
import re
from typing import Any, Dict, Optional, Tuple

import requests

from .base import BulkSubmitError, SearchClient
from .schema import Batch

DEFAULT_HOST = "http://localhost:9200"


def _timeouts(connect: Optional[float] = None, read: Optional[float] = None) -> Tuple[float, float]:
    """Return (connect_timeout, read_timeout) in seconds; env-overridable."""
    ct = float(connect if connect is not None else os.getenv("ELASTIC_SEARCH_CONNECT_TIMEOUT", "10"))
    rt = float(read if read is not None else os.getenv("ELASTIC_SEARCH_READ_TIMEOUT", "120"))
    return (ct, rt)


def normalize_host(host: Optional[str]) -> str:
    """host argument > ELASTIC_SEARCH_HOST > default; ensure scheme; strip trailing slash."""
    cand = (host or os.getenv("ELASTIC_SEARCH_HOST") or DEFAULT_HOST).strip()
    if not re.match(r"^https?://", cand):
        cand = "http://" + cand
    return cand.rstrip("/")


def _first_item_error(data: Dict[str, Any]) -> str:
    for item in data.get("items", []):
        for result in item.values():
            if isinstance(result, dict) and result.get("error"):
                err = result["error"]
                reason = err.get("reason") if isinstance(err, dict) else err
                return f"{result.get('_id', '?')}: {reason}"
    return "unknown item error"


class ElasticsearchClient(SearchClient):
    """
    Minimal Elasticsearch/OpenSearch REST client.

    Only the four calls an index rebuild needs: HEAD/DELETE/PUT on the
    index and POST /_bulk with an NDJSON body.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base = normalize_host(host)
        self.timeout = _timeouts(connect_timeout, read_timeout)
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")

    def _url(self, path: str) -> str:
        return f"{self.base}/{path.lstrip('/')}"

    def exists(self, index: str) -> bool:
        r = self.session.head(self._url(index), timeout=self.timeout)
        if r.status_code == 404:
            return False
        r.raise_for_status()
        return True

    def delete(self, index: str) -> None:
        r = self.session.delete(self._url(index), timeout=self.timeout)
        r.raise_for_status()

    def create(self, index: str, properties: Dict[str, Any]) -> None:
        payload = {"mappings": {"properties": properties}}
        r = self.session.put(self._url(index), json=payload, timeout=self.timeout)
        r.raise_for_status()

    def bulk(self, batch: Batch) -> Dict[str, Any]:
        try:
            r = self.session.post(
                self._url("_bulk"),
                data=batch.to_ndjson().encode("utf-8"),
                headers={"Content-Type": "application/x-ndjson"},
                timeout=self.timeout,
            )
            r.raise_for_status()
            data = r.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise BulkSubmitError(f"batch {batch.number}: {e}") from e
        if not isinstance(data, dict):
            raise BulkSubmitError(f"batch {batch.number}: unexpected bulk response {data!r:.200}")
        # A 200 response may still carry per-document failures
        if data.get("errors"):
            raise BulkSubmitError(f"batch {batch.number}: {_first_item_error(data)}")
        return data

from typing import Optional

from .base import SearchClient
from .es_http import ElasticsearchClient


def make_client(
    backend: str = "elasticsearch",
    host: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    connect_timeout: Optional[float] = None,
    read_timeout: Optional[float] = None,
) -> SearchClient:
    backend = (backend or "elasticsearch").lower()

    # OpenSearch speaks the same REST dialect for everything used here
    if backend in ("elasticsearch", "opensearch"):
        return ElasticsearchClient(
            host=host,
            username=username,
            password=password,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )

    raise RuntimeError(f"Unsupported backend: {backend}")

from abc import ABC, abstractmethod
from typing import Any, Dict

from .schema import Batch


class IndexLifecycleError(RuntimeError):
    pass


class BulkSubmitError(RuntimeError):
    pass


class SearchClient(ABC):
    @abstractmethod
    def exists(self, index: str) -> bool:
        ...

    @abstractmethod
    def delete(self, index: str) -> None:
        ...

    @abstractmethod
    def create(self, index: str, properties: Dict[str, Any]) -> None:
        """Create `index` with the given field mapping."""
        ...

    @abstractmethod
    def bulk(self, batch: Batch) -> Dict[str, Any]:
        """Write one batch; raise BulkSubmitError if any part of it failed."""
        ...

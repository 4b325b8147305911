"""
Abstract base class for ship catalog sources
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any


@dataclass
class FetchResult:
    """Raw records from one full fetch plus fetch-level diagnostics"""
    records: List[Dict[str, Any]]
    pages_processed: int = 0
    errors: List[str] = field(default_factory=list)


class CatalogSource(ABC):
    """
    Abstract base class for external ship catalog sources.

    A source returns the complete upstream record set; validation, transform
    and persistence belong to the sync runner.
    """

    source_name: str = "catalog"

    @abstractmethod
    async def fetch_all(self) -> FetchResult:
        """
        Fetch every record from the source.

        Returns:
            FetchResult with unvalidated records

        Raises:
            ExtractionError: When the source cannot be fully read
        """
        pass

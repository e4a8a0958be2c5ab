from enum import Enum
from typing import List

from pydantic import Field

from discovery.domain.models.product import DiscoveryModel


class IndexAction(str, Enum):
    UPSERTED = "upserted"
    DELETED = "deleted"
    NOOP = "noop"


class IndexChange(DiscoveryModel):
    product_id: int
    action: IndexAction


class SyncReport(DiscoveryModel):
    """Outcome of one full resync. Failures never roll back what was written."""
    written: int = 0
    deleted: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
    elapsed_ms: float = 0.0


class SchemaStatus(DiscoveryModel):
    index_name: str
    created: bool

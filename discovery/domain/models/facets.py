from typing import List, Optional

from discovery.domain.models.product import DiscoveryModel


class RangeBucket(DiscoveryModel):
    key: str
    label: str
    min_value: float
    max_value: Optional[float] = None      # inclusive; None = unbounded
    product_count: int = 0


class RangeFacet(DiscoveryModel):
    field: str
    buckets: List[RangeBucket]

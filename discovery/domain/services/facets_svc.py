# discovery/domain/services/facets_svc.py
import asyncio
from typing import Any, Dict, Optional, Sequence, Tuple

from discovery.domain.models.facets import RangeBucket, RangeFacet
from discovery.domain.services.constants import DISCOUNT_RANGES, VIEW_COUNT_RANGES

RangeSpec = Tuple[str, str, float, Optional[float]]


def range_match(field: str, lo: float, hi: Optional[float]) -> Dict[str, Any]:
    cond: Dict[str, Any] = {"$gte": lo}
    if hi is not None:
        cond["$lte"] = hi
    return {field: cond}


class FacetService:
    """Labelled range buckets counted over active products."""

    def __init__(self, product_repo):
        self.products = product_repo

    async def _facet(self, field: str, ranges: Sequence[RangeSpec]) -> RangeFacet:
        counts = await asyncio.gather(
            *(self.products.count_active(range_match(field, lo, hi)) for _, _, lo, hi in ranges)
        )
        return RangeFacet(
            field=field,
            buckets=[
                RangeBucket(key=key, label=label, min_value=lo, max_value=hi, product_count=n)
                for (key, label, lo, hi), n in zip(ranges, counts)
            ],
        )

    async def view_count_ranges(self) -> RangeFacet:
        return await self._facet("views", VIEW_COUNT_RANGES)

    async def discount_ranges(self) -> RangeFacet:
        return await self._facet("discount", DISCOUNT_RANGES)

# discovery/domain/services/index_sync_svc.py
import logging
import time
from typing import List, Set

from discovery.core.errors import BackendUnavailableError, IndexSchemaError
from discovery.domain.models.sync import IndexAction, IndexChange, SchemaStatus, SyncReport
from discovery.domain.repositories.search_index_repo import to_search_document

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 50


class IndexSynchronizer:
    """
    Only writer of the secondary index. Keeps "one SearchDocument per active
    product" true after every resync and every incremental hook.
    """

    def __init__(self, product_repo, index_repo, batch_size: int = 500):
        self.products = product_repo
        self.index = index_repo
        self.batch_size = max(1, batch_size)

    async def ensure_schema(self) -> SchemaStatus:
        """Idempotent: creates the search index only when it is missing."""
        try:
            if await self.index.index_exists():
                logger.info("search index %s already present", self.index.index)
                return SchemaStatus(index_name=self.index.index, created=False)
            await self.index.create_index()
        except BackendUnavailableError as e:
            logger.error("search index creation failed: %s", e.diagnostic)
            raise IndexSchemaError(diagnostic=e.diagnostic) from e
        logger.info("search index %s created", self.index.index)
        return SchemaStatus(index_name=self.index.index, created=True)

    async def resync_all(self) -> SyncReport:
        """
        Streams every product from the record store, upserts the active ones in
        batches and then drops documents of products that are gone or inactive.
        """
        t0 = time.perf_counter()
        written = failed = 0
        errors: List[str] = []
        keep: Set[int] = set()
        batch = []

        async def flush():
            nonlocal written, failed
            w, f, errs = await self.index.upsert_many(batch)
            written += w
            failed += f
            errors.extend(errs[: MAX_REPORTED_ERRORS - len(errors)])
            batch.clear()

        async for product in self.products.iter_with_category(self.batch_size):
            if not product.is_active:
                continue
            keep.add(product.product_id)
            batch.append(to_search_document(product))
            if len(batch) >= self.batch_size:
                await flush()
        if batch:
            await flush()

        deleted = await self.index.delete_except(keep)
        report = SyncReport(
            written=written,
            deleted=deleted,
            failed=failed,
            errors=errors,
            elapsed_ms=round((time.perf_counter() - t0) * 1000, 1),
        )
        logger.info(
            "resync done written=%s deleted=%s failed=%s time=%.1fms",
            report.written, report.deleted, report.failed, report.elapsed_ms,
        )
        return report

    async def upsert_one(self, product_id: int) -> IndexChange:
        product = await self.products.get_by_id(product_id, active_only=False)
        if product is None or not product.is_active:
            return await self.delete_one(product_id)
        _, failed, errs = await self.index.upsert_many([to_search_document(product)])
        if failed:
            raise BackendUnavailableError("Search document write failed", diagnostic=errs[0] if errs else None)
        logger.debug("index upsert product_id=%s", product_id)
        return IndexChange(product_id=product_id, action=IndexAction.UPSERTED)

    async def delete_one(self, product_id: int) -> IndexChange:
        removed = await self.index.delete_one(product_id)
        logger.debug("index delete product_id=%s removed=%s", product_id, removed)
        return IndexChange(
            product_id=product_id,
            action=IndexAction.DELETED if removed else IndexAction.NOOP,
        )

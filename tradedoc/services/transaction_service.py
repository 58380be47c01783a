"""
TradeDoc Tracker - Transaction Service

Business logic for transaction import and read-only listings.
"""

import logging
import math
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.config import settings
from tradedoc.models.transaction import DocumentStatus, StatusView, Transaction
from tradedoc.services.normalizer import batch_refs, normalize_batch
from tradedoc.services.transaction_store import TransactionFilter, TransactionStore
from tradedoc.utils.dates import business_today
from tradedoc.utils.error_handling import (
    BatchValidationException,
    DuplicateEntryException,
    TransactionNotFoundException,
)

logger = logging.getLogger(__name__)


def build_page(items: List[Any], total: int, page: int, limit: int) -> Dict[str, Any]:
    """Standard page envelope."""
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "last_page": max(math.ceil(total / limit), 1) if limit else 1,
    }


class TransactionService:
    """Service for transaction import and queries."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = TransactionStore(db)

    # ===========================================
    # IMPORT
    # ===========================================

    async def import_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        strict: Optional[bool] = None,
    ) -> Dict[str, int]:
        """
        Import a spreadsheet batch all-or-nothing.

        Returns:
            {created, skipped_duplicates, total_rows}

        Raises:
            BatchValidationException: Any row failed validation; nothing saved
            DuplicateEntryException: A concurrent import stored one of the refs first
        """
        rows = list(rows)
        strict = settings.import_strict_mode if strict is None else strict

        existing = await self.store.existing_refs(batch_refs(rows))

        report = normalize_batch(
            rows,
            existing,
            strict=strict,
            declaration_days=settings.declaration_days,
            additional_days=settings.additional_days,
        )

        if report.has_errors:
            logger.warning(
                f"Transaction import rejected: {len(report.errors)} of {report.total_rows} rows invalid"
            )
            raise BatchValidationException([error.to_dict() for error in report.errors])

        if report.drafts:
            try:
                await self.store.bulk_insert([draft.as_dict() for draft in report.drafts])
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                logger.warning(f"Transaction import lost a race on trref: {e.orig}")
                raise DuplicateEntryException(
                    "Transaction",
                    "trref",
                    ", ".join(draft.trref for draft in report.drafts[:5]),
                )

        result = {
            "created": len(report.drafts),
            "skipped_duplicates": report.skipped_duplicates,
            "total_rows": report.total_rows,
        }
        logger.info(f"Transaction import: {result}")
        return result

    # ===========================================
    # QUERIES
    # ===========================================

    async def get_transaction(self, transaction_id: int) -> Transaction:
        transaction = await self.store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundException(transaction_id)
        return transaction

    async def list_transactions(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """All transactions, newest first, searched on customer name or trref."""
        items, total = await self.store.find_paginated(
            TransactionFilter(search=search), page, limit
        )
        return build_page(items, total, page, limit)

    async def list_by_status(
        self,
        view: StatusView,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Transactions in a status view.

        Overdue is evaluated against today in the business timezone;
        awaiting includes transactions without a deadline.
        """
        items, total = await self.store.find_paginated(
            TransactionFilter(search=search, view=view, today=today or business_today()),
            page,
            limit,
        )
        return build_page(items, total, page, limit)

    async def list_post_censorship(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        post_inspection: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Censored transactions with documents added, for post-inspection."""
        items, total = await self.store.find_paginated(
            TransactionFilter(
                search=search,
                status=DocumentStatus.DOCUMENTS_ADDED,
                censored=True,
                post_inspection=post_inspection,
            ),
            page,
            limit,
        )
        return build_page(items, total, page, limit)

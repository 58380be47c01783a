"""
TradeDoc Tracker - Transaction Store

Persistence access for transactions over an AsyncSession.

The store never commits; the calling service owns the unit of work.
Exceptions are the reminder claim helpers, which must be visible to
concurrent sweeps as soon as they succeed.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.models.customer import Customer
from tradedoc.models.transaction import DocumentStatus, StatusView, Transaction


@dataclass
class TransactionFilter:
    """Query filter; unset attributes are ignored."""
    search: Optional[str] = None
    view: Optional[StatusView] = None
    today: Optional[date] = None
    status: Optional[DocumentStatus] = None
    censored: Optional[bool] = None
    post_inspection: Optional[bool] = None
    is_send_email: Optional[bool] = None
    custno: Optional[str] = None


LIKE_ESCAPE = "\\"


def search_pattern(search: str) -> str:
    """Substring LIKE pattern with `%` and `_` matched literally."""
    term = search.strip()
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"


def status_view_condition(view: StatusView, today: date):
    """SQL condition matching the derived status view on `today`."""
    deadline = Transaction.expected_declaration_date
    awaiting = Transaction.status == DocumentStatus.AWAITING_DOCUMENTS
    if view == StatusView.OVERDUE:
        return and_(awaiting, deadline.is_not(None), deadline < today)
    if view == StatusView.AWAITING_DOCUMENTS:
        return and_(awaiting, or_(deadline.is_(None), deadline >= today))
    return Transaction.status == DocumentStatus.DOCUMENTS_ADDED


class TransactionStore:
    """Keyed storage for transactions, unique on `trref`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def get(self, transaction_id: int) -> Optional[Transaction]:
        result = await self.db.execute(
            select(Transaction).where(Transaction.id == transaction_id)
        )
        return result.scalar_one_or_none()

    async def find_by_key(self, trref: str) -> Optional[Transaction]:
        result = await self.db.execute(
            select(Transaction).where(Transaction.trref == trref)
        )
        return result.scalar_one_or_none()

    async def existing_refs(self, refs: Iterable[str]) -> Set[str]:
        """Subset of `refs` already stored."""
        wanted = list({ref for ref in refs if ref})
        found: Set[str] = set()
        # Stay under the bound-parameter limit of smaller databases
        for start in range(0, len(wanted), 500):
            chunk = wanted[start:start + 500]
            result = await self.db.execute(
                select(Transaction.trref).where(Transaction.trref.in_(chunk))
            )
            found.update(result.scalars().all())
        return found

    # ===========================================
    # QUERIES
    # ===========================================

    def _conditions(self, filters: TransactionFilter) -> List[Any]:
        conditions = []
        if filters.search:
            term = search_pattern(filters.search)
            conditions.append(or_(
                Transaction.custnm.ilike(term, escape=LIKE_ESCAPE),
                Transaction.trref.ilike(term, escape=LIKE_ESCAPE),
            ))
        if filters.view is not None:
            conditions.append(status_view_condition(filters.view, filters.today or date.today()))
        if filters.status is not None:
            conditions.append(Transaction.status == filters.status)
        if filters.censored is not None:
            conditions.append(Transaction.censored == filters.censored)
        if filters.post_inspection is not None:
            conditions.append(Transaction.post_inspection == filters.post_inspection)
        if filters.is_send_email is not None:
            conditions.append(Transaction.is_send_email == filters.is_send_email)
        if filters.custno is not None:
            conditions.append(Transaction.custno == filters.custno)
        return conditions

    async def find_paginated(
        self,
        filters: TransactionFilter,
        page: int = 1,
        size: int = 10,
    ) -> Tuple[List[Transaction], int]:
        """Newest first; returns (items, total)."""
        conditions = self._conditions(filters)

        count_result = await self.db.execute(
            select(func.count()).select_from(Transaction).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def find_all(self, filters: TransactionFilter) -> List[Transaction]:
        result = await self.db.execute(
            select(Transaction)
            .where(*self._conditions(filters))
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return list(result.scalars().all())

    # ===========================================
    # WRITES
    # ===========================================

    async def bulk_insert(self, records: Sequence[Dict[str, Any]]) -> List[Transaction]:
        """Stage new transactions and flush; unique violations surface here."""
        transactions = [Transaction(**record) for record in records]
        self.db.add_all(transactions)
        await self.db.flush()
        return transactions

    async def update_fields(self, transaction: Transaction, fields: Dict[str, Any]) -> Transaction:
        for key, value in fields.items():
            setattr(transaction, key, value)
        await self.db.flush()
        return transaction

    # ===========================================
    # REMINDER HELPERS
    # ===========================================

    async def find_reminder_candidates(self) -> List[Tuple[Transaction, Customer]]:
        """Unclaimed, unsent transactions whose customer has an email."""
        result = await self.db.execute(
            select(Transaction, Customer)
            .join(Customer, Customer.custno == Transaction.custno)
            .where(
                Transaction.is_send_email == False,  # noqa: E712
                Transaction.is_sending_email == False,  # noqa: E712
                Customer.email.is_not(None),
                Customer.email != "",
            )
            .order_by(Transaction.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def claim_reminder(self, transaction_id: int, due_at: datetime) -> bool:
        """
        Take the reminder claim with a conditional update and commit it.

        Returns True only for the caller that flipped `is_sending_email`.
        """
        result = await self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.is_sending_email == False,  # noqa: E712
                Transaction.is_send_email == False,  # noqa: E712
            )
            .values(is_sending_email=True, reminder_due_at=due_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def mark_reminder_attempted(self, transaction_id: int, attempted_at: datetime) -> bool:
        """Record the single delivery attempt; False if it is not ours to make."""
        result = await self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.is_sending_email == True,  # noqa: E712
                Transaction.is_send_email == False,  # noqa: E712
                Transaction.reminder_attempted_at.is_(None),
            )
            .values(reminder_attempted_at=attempted_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def find_unattempted_claims(self) -> List[Tuple[Transaction, Customer]]:
        """Claims that never reached a delivery attempt."""
        result = await self.db.execute(
            select(Transaction, Customer)
            .join(Customer, Customer.custno == Transaction.custno)
            .where(
                Transaction.is_sending_email == True,  # noqa: E712
                Transaction.is_send_email == False,  # noqa: E712
                Transaction.reminder_attempted_at.is_(None),
            )
            .order_by(Transaction.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def find_pending_claims(self) -> List[Transaction]:
        """All claimed transactions not yet delivered."""
        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.is_sending_email == True,  # noqa: E712
                Transaction.is_send_email == False,  # noqa: E712
            )
            .order_by(Transaction.reminder_due_at, Transaction.id)
        )
        return list(result.scalars().all())

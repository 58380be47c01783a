"""
TradeDoc Tracker - Customer Service

Business logic for the customer directory.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.models.customer import Customer
from tradedoc.models.transaction import Transaction
from tradedoc.schemas.customer import CustomerImportRow
from tradedoc.services.transaction_service import build_page
from tradedoc.services.transaction_store import LIKE_ESCAPE, search_pattern
from tradedoc.utils.error_handling import BatchValidationException, CustomerNotFoundException
from tradedoc.utils.spreadsheet import ROW_NUMBER_KEY

logger = logging.getLogger(__name__)

# Accepted headers per field, first match wins
COLUMN_ALIASES = {
    "custno": ("Custno", "customer_number"),
    "name": ("Custnm", "customer_name"),
    "email": ("email", "Email"),
    "contact_person": ("contact_person",),
    "phone_number": ("phone_number",),
}


def _pick(row: Mapping[str, Any], aliases) -> Any:
    for alias in aliases:
        value = row.get(alias)
        if value is not None and str(value).strip():
            return value
    return None


class CustomerService:
    """Service for customer operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_customer(self, custno: str) -> Customer:
        result = await self.db.execute(
            select(Customer).where(Customer.custno == custno)
        )
        customer = result.scalar_one_or_none()
        if not customer:
            raise CustomerNotFoundException(custno)
        return customer

    async def import_customers(self, rows: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
        """
        Upsert customers by custno, all-or-nothing.

        Raises:
            BatchValidationException: Any row lacks custno, name or a valid email
        """
        parsed: List[CustomerImportRow] = []
        errors = []
        total = 0
        for index, row in enumerate(rows):
            total += 1
            values = {field: _pick(row, aliases) for field, aliases in COLUMN_ALIASES.items()}
            try:
                parsed.append(CustomerImportRow(**values))
            except ValidationError as e:
                fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
                row_number = row.get(ROW_NUMBER_KEY, index + 2)
                errors.append({"row": row_number, "error": f"Invalid or missing fields: {', '.join(fields)}"})

        if errors:
            logger.warning(f"Customer import rejected: {len(errors)} of {total} rows invalid")
            raise BatchValidationException(errors, resource_type="Customer")

        result = await self.db.execute(
            select(Customer).where(Customer.custno.in_(list({row.custno for row in parsed})))
        )
        existing = {customer.custno: customer for customer in result.scalars().all()}

        created = 0
        updated = 0
        for row in parsed:
            customer = existing.get(row.custno)
            if customer is None:
                customer = Customer(**row.model_dump())
                self.db.add(customer)
                existing[row.custno] = customer
                created += 1
            else:
                for key, value in row.model_dump(exclude={"custno"}).items():
                    if value is not None:
                        setattr(customer, key, value)
                updated += 1

        await self.db.commit()

        summary = {"created": created, "updated": updated, "total_rows": total}
        logger.info(f"Customer import: {summary}")
        return summary

    async def list_customers_with_transactions(
        self,
        page: int = 1,
        limit: int = 10,
        is_send_email: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Customers having at least one matching transaction, each with those
        transactions (filtered by reminder state when given).
        """
        tx_conditions = [Transaction.custno == Customer.custno]
        if is_send_email is not None:
            tx_conditions.append(Transaction.is_send_email == is_send_email)

        conditions = [exists().where(*tx_conditions)]
        if search:
            term = search_pattern(search)
            conditions.append(or_(
                Customer.name.ilike(term, escape=LIKE_ESCAPE),
                Customer.custno.ilike(term, escape=LIKE_ESCAPE),
            ))

        count_result = await self.db.execute(
            select(func.count()).select_from(Customer).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Customer)
            .where(*conditions)
            .order_by(Customer.custno)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        customers = list(result.scalars().all())

        transactions_by_custno: Dict[str, List[Transaction]] = {c.custno: [] for c in customers}
        if customers:
            tx_query = (
                select(Transaction)
                .where(Transaction.custno.in_(list(transactions_by_custno)))
                .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            )
            if is_send_email is not None:
                tx_query = tx_query.where(Transaction.is_send_email == is_send_email)
            tx_result = await self.db.execute(tx_query)
            for transaction in tx_result.scalars().all():
                transactions_by_custno[transaction.custno].append(transaction)

        items = [
            {"customer": customer, "transactions": transactions_by_custno[customer.custno]}
            for customer in customers
        ]
        return build_page(items, total, page, limit)

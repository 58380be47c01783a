"""
TradeDoc Tracker - Workflow Service

Role-gated updates to a transaction's document-completion workflow.

Each operation is a command object naming only the fields it changes.
Fields left as UNSET are not touched.

Status transitions (forward only):
    awaiting_documents -> awaiting_documents   no-op
    awaiting_documents -> documents_added      allowed
    documents_added    -> documents_added      no-op
    documents_added    -> awaiting_documents   rejected (409)
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.config import settings
from tradedoc.models.transaction import DocumentStatus, Transaction
from tradedoc.services.transaction_store import TransactionStore
from tradedoc.utils.error_handling import (
    BusinessRuleException,
    InvalidStatusException,
    InvalidTransitionException,
    TransactionNotFoundException,
)
from tradedoc.utils.permissions import Actor, Permission, require_permission

logger = logging.getLogger(__name__)


class _Unset:
    """Marker for command fields the caller did not supply."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


ALLOWED_TRANSITIONS = {
    DocumentStatus.AWAITING_DOCUMENTS: {
        DocumentStatus.AWAITING_DOCUMENTS,
        DocumentStatus.DOCUMENTS_ADDED,
    },
    DocumentStatus.DOCUMENTS_ADDED: {
        DocumentStatus.DOCUMENTS_ADDED,
    },
}


def parse_status(value: Any) -> DocumentStatus:
    """
    Parse an external status value (code or Vietnamese label).

    Raises:
        InvalidStatusException: If the value is outside the closed set
    """
    try:
        return DocumentStatus.parse(value)
    except (ValueError, TypeError):
        raise InvalidStatusException(
            value,
            allowed=[member.value for member in DocumentStatus] + [member.label for member in DocumentStatus],
        )


def can_transition(current: DocumentStatus, requested: DocumentStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, set())


# ===========================================
# COMMANDS
# ===========================================

@dataclass(frozen=True)
class _Command:
    permission: ClassVar[Permission]

    def __post_init__(self):
        status = getattr(self, "status", UNSET)
        if status is not UNSET:
            object.__setattr__(self, "status", parse_status(status))

    def changes(self) -> Dict[str, Any]:
        """Fields the caller supplied."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }


@dataclass(frozen=True)
class AdvanceDocuments(_Command):
    """Teller records that the customer supplied the documents."""
    permission: ClassVar[Permission] = Permission.UPDATE_DOCUMENT_STATUS

    status: Any = UNSET
    note: Any = UNSET


@dataclass(frozen=True)
class SetCensorship(_Command):
    """Controller approves (censors) the transaction."""
    permission: ClassVar[Permission] = Permission.CENSOR_TRANSACTIONS

    status: Any = UNSET
    note_censored: Any = UNSET
    censored: Any = UNSET


@dataclass(frozen=True)
class SetPostInspection(_Command):
    """Post-inspector signs off after censorship."""
    permission: ClassVar[Permission] = Permission.POST_INSPECT_TRANSACTIONS

    status: Any = UNSET
    note_inspection: Any = UNSET
    post_inspection: Any = UNSET


# ===========================================
# SERVICE
# ===========================================

class WorkflowService:
    """Applies workflow commands to stored transactions."""

    def __init__(
        self,
        db: AsyncSession,
        require_censorship_before_inspection: Optional[bool] = None,
    ):
        self.db = db
        self.store = TransactionStore(db)
        if require_censorship_before_inspection is None:
            require_censorship_before_inspection = settings.require_censorship_before_inspection
        self.require_censorship_before_inspection = require_censorship_before_inspection

    async def apply(self, transaction_id: int, command: _Command, actor: Actor) -> Transaction:
        """
        Apply a command as `actor`.

        Raises:
            InsufficientPermissionsException: Role lacks the command's permission
            TransactionNotFoundException: Unknown id
            InvalidTransitionException: Status would move backwards
            BusinessRuleException: Inspection before censorship when enforced
        """
        require_permission(actor, command.permission)

        transaction = await self.store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundException(transaction_id)

        changes = command.changes()

        if "status" in changes and not can_transition(transaction.status, changes["status"]):
            raise InvalidTransitionException(transaction.status.value, changes["status"].value)

        if changes.get("post_inspection") is True and not transaction.censored:
            if self.require_censorship_before_inspection:
                raise BusinessRuleException(
                    f"Transaction {transaction.trref} must be censored before post-inspection",
                    rule="CENSORSHIP_BEFORE_INSPECTION",
                )
            logger.warning(
                f"Transaction {transaction.trref} post-inspected before censorship by {actor.name}"
            )

        status = changes.get("status", transaction.status)
        changes["is_document_added"] = status == DocumentStatus.DOCUMENTS_ADDED
        changes["updated_by"] = actor.name
        changes["updated_at"] = datetime.now(timezone.utc)

        await self.store.update_fields(transaction, changes)
        await self.db.commit()
        await self.db.refresh(transaction)

        logger.info(
            f"{type(command).__name__} on transaction {transaction.id} ({transaction.trref}) "
            f"by {actor.name}: {sorted(command.changes())}"
        )
        return transaction

    async def advance_documents(self, transaction_id: int, actor: Actor, **values) -> Transaction:
        return await self.apply(transaction_id, AdvanceDocuments(**values), actor)

    async def set_censorship(self, transaction_id: int, actor: Actor, **values) -> Transaction:
        return await self.apply(transaction_id, SetCensorship(**values), actor)

    async def set_post_inspection(self, transaction_id: int, actor: Actor, **values) -> Transaction:
        return await self.apply(transaction_id, SetPostInspection(**values), actor)

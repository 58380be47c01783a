"""
TradeDoc Tracker - Sender Account Service

Business logic for the mailbox used to send reminders.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedoc.config import settings
from tradedoc.models.email_config import EmailConfig
from tradedoc.utils.error_handling import DuplicateEntryException, NotFoundException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SenderAccount:
    """Resolved `from` address and its credential, if stored."""
    email: str
    password: Optional[str] = None


class EmailConfigService:
    """Service for sender account operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_configs(self) -> List[EmailConfig]:
        result = await self.db.execute(
            select(EmailConfig).order_by(EmailConfig.updated_at.desc(), EmailConfig.id.desc())
        )
        return list(result.scalars().all())

    async def get_config(self, config_id: int) -> EmailConfig:
        result = await self.db.execute(
            select(EmailConfig).where(EmailConfig.id == config_id)
        )
        config = result.scalar_one_or_none()
        if not config:
            raise NotFoundException("EmailConfig", config_id)
        return config

    async def _ensure_unique(self, email: str, exclude_id: Optional[int] = None) -> None:
        query = select(EmailConfig.id).where(EmailConfig.email == email)
        if exclude_id is not None:
            query = query.where(EmailConfig.id != exclude_id)
        result = await self.db.execute(query)
        if result.first() is not None:
            raise DuplicateEntryException("EmailConfig", "email", email)

    async def create_config(self, email: str, password: str, is_active: bool = True) -> EmailConfig:
        """Create a sender account."""
        email = email.strip().lower()
        await self._ensure_unique(email)

        config = EmailConfig(email=email, password=password, is_active=is_active)
        self.db.add(config)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEntryException("EmailConfig", "email", email)
        await self.db.refresh(config)

        logger.info(f"Created sender account {config.id} ({email})")
        return config

    async def update_config(
        self,
        config_id: int,
        email: Optional[str] = None,
        password: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> EmailConfig:
        """Update a sender account; None leaves a field unchanged."""
        config = await self.get_config(config_id)

        if email is not None:
            email = email.strip().lower()
            await self._ensure_unique(email, exclude_id=config_id)
            config.email = email
        if password is not None:
            config.password = password
        if is_active is not None:
            config.is_active = is_active

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEntryException("EmailConfig", "email", email or config.email)
        await self.db.refresh(config)

        logger.info(f"Updated sender account {config.id}")
        return config

    async def get_active_sender(self) -> SenderAccount:
        """Most recently updated active account, else the configured sender."""
        result = await self.db.execute(
            select(EmailConfig)
            .where(EmailConfig.is_active == True)  # noqa: E712
            .order_by(EmailConfig.updated_at.desc(), EmailConfig.id.desc())
            .limit(1)
        )
        config = result.scalar_one_or_none()
        if config:
            return SenderAccount(email=config.email, password=config.password)
        return SenderAccount(email=settings.email_from or "noreply@localhost")

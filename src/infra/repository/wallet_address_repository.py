"""
Wallet address repository using SQLAlchemy ORM
"""

from datetime import datetime, timezone
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from src.core.service.siwf.models.wallet import WalletAddress
from src.infra.models import WalletAddressModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class WalletAddressRepository:
    """Repository for wallet addresses linked to users"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _model_to_entity(self, model: WalletAddressModel) -> WalletAddress:
        return WalletAddress(
            user_id=model.user_id,
            address=model.address,
            chain_id=model.chain_id,
            is_primary=model.is_primary,
            created_at=model.created_at
        )

    async def list_for_user(self, user_id: str) -> List[WalletAddress]:
        stmt = (
            select(WalletAddressModel)
            .where(WalletAddressModel.user_id == user_id)
            .order_by(WalletAddressModel.created_at, WalletAddressModel.chain_id.desc())
        )
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def add_many(self, addresses: List[WalletAddress]) -> int:
        """
        Insert addresses in one batch, skipping (user, address, chain) rows that already
        exist or repeat within the batch.

        Returns:
            Number of rows written
        """
        if not addresses:
            return 0

        existing = set()
        for user_id in {address.user_id for address in addresses}:
            for row in await self.list_for_user(user_id):
                existing.add((row.user_id, row.address, row.chain_id))

        now = datetime.now(timezone.utc)
        new_models = []
        for address in addresses:
            key = (address.user_id, address.address, address.chain_id)
            if key in existing:
                continue
            existing.add(key)
            new_models.append(
                WalletAddressModel(
                    user_id=address.user_id,
                    address=address.address,
                    chain_id=address.chain_id,
                    is_primary=address.is_primary,
                    created_at=now
                )
            )

        if not new_models:
            return 0

        try:
            self.session.add_all(new_models)
            await self.session.commit()
        except IntegrityError as e:
            # A concurrent link wrote the same rows
            await self.session.rollback()
            logger.warning(f"Wallet addresses already linked: {e.orig}")
            return 0
        except Exception:
            await self.session.rollback()
            raise

        return len(new_models)

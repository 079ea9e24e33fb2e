"""
SQLAlchemy ORM models for database tables
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, BigInteger, Integer, DateTime, Boolean, ForeignKey, Index, JSON
from sqlalchemy.orm import declarative_base
import uuid

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """Local user owned by the identity platform"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<User(id='{self.id}', name='{self.name}')>"


class AccountModel(Base):
    """Links a user to an external authentication provider"""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_id = Column(String(50), nullable=False)
    account_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        Index('idx_accounts_provider_account', 'provider_id', 'account_id', unique=True),
        Index('idx_accounts_user', 'user_id'),
    )

    def __repr__(self):
        return f"<Account(provider='{self.provider_id}', account_id='{self.account_id}')>"


class FarcasterModel(Base):
    """Farcaster identity profile, one row per fid"""

    __tablename__ = "farcaster"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    fid = Column(BigInteger, nullable=False, unique=True)
    username = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    notification_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        Index('idx_farcaster_user', 'user_id'),
    )

    def __repr__(self):
        return f"<Farcaster(fid={self.fid}, user_id='{self.user_id}')>"


class WalletAddressModel(Base):
    """Wallet address linked to a user"""

    __tablename__ = "wallet_addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    address = Column(String(255), nullable=False)
    chain_id = Column(Integer, nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    __table_args__ = (
        Index('idx_wallet_addresses_user_address_chain', 'user_id', 'address', 'chain_id', unique=True),
        Index('idx_wallet_addresses_address', 'address'),
    )

    def __repr__(self):
        return f"<WalletAddress(address='{self.address}', chain_id={self.chain_id}, primary={self.is_primary})>"

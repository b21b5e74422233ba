"""
SQLAlchemy ORM models for OAuth state, provider credentials and synced logs.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, Date, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class OAuthState(Base):
    """Single-use record correlating the provider redirect with its initiator."""

    __tablename__ = "oauth_states"

    state = Column(String(128), primary_key=True)
    user_id = Column(String(128), nullable=True)
    provider = Column(String(32), nullable=False, default="fitbit")
    code_verifier = Column(String(128), nullable=False)
    created_at = Column(BigInteger, nullable=False)  # epoch ms

    __table_args__ = (Index("ix_oauth_states_created_at", "created_at"),)


class ProviderCredential(Base):
    __tablename__ = "provider_credentials"

    user_id = Column(String(128), primary_key=True)
    provider = Column(String(32), primary_key=True)
    provider_user_id = Column(String(128))
    access_token = Column(Text)
    refresh_token = Column(Text)
    expires_at = Column(BigInteger)  # epoch ms
    scopes = Column(Text)
    last_updated = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class DailyActivityLog(Base):
    __tablename__ = "daily_activity_logs"

    user_id = Column(String(128), primary_key=True)
    entry_id = Column(String(64), primary_key=True)
    entry_type = Column(String(32), nullable=False, default="fitbit_data")
    log_date = Column(Date, nullable=False)
    weight = Column(Float, default=0)
    steps = Column(Integer, default=0)
    calories_burned = Column(Integer, default=0)
    last_synced = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

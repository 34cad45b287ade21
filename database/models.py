"""
SQLAlchemy ORM model backing the SQL storage provider.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    # epoch milliseconds; NULL = never expires
    expires_at = Column(BigInteger, nullable=True, index=True)

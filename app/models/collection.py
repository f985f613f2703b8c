"""Storage row for one named ledger collection.

Each collection (inward, outward, hard disks, counters, status overrides) is
kept as a single JSON text payload keyed by its name, so replacing a
collection is one row write and replacing several is one transaction.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base


class StoredCollection(Base):
    __tablename__ = "ledger_collections"

    name = Column(Text, primary_key=True)
    payload = Column(Text, nullable=False, default="[]")
    revision = Column(Integer, nullable=False, default=0)
    updated_at = Column(Text, nullable=False)


__all__ = ["StoredCollection"]

# Database wiring: SQLite connections enforce foreign keys and share the busy timeout.
from __future__ import annotations

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from realza import models
from realza.db import SQLITE_BUSY_TIMEOUT_SECONDS, engine
from realza.models import BidStatus


# A bid pointing at a showing that does not exist is refused by the database itself
def test_orphan_bid_is_rejected_by_foreign_keys(db):
    agent = models.User(email="agent@example.com", password_hash="x", role=models.UserRole.AGENT)
    db.add(agent)
    db.commit()

    db.add(models.ShowingBid(showing_id=9999, agent_id=agent.id, bid_amount=100, status=BidStatus.PENDING))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert db.query(models.ShowingBid).count() == 0


def test_sqlite_connection_settings():
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    assert SQLITE_BUSY_TIMEOUT_SECONDS == 15

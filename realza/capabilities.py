# Capability objects for privileged store access.
# Code that reads rows across users must be handed a ServiceRole explicitly;
# there is no module-level privileged session to reach for.
from __future__ import annotations

from sqlalchemy.orm import Query, Session


class ServiceRole:
    """Grant to read showings, bids and agent profiles that belong to other users.

    Construct through `grant_service_role` at the edge (a route dependency or a
    job entrypoint) and pass it down to the query that needs it.
    """

    __slots__ = ("_db",)

    def __init__(self, db: Session) -> None:
        self._db = db

    def query(self, *entities) -> Query:
        return self._db.query(*entities)


def grant_service_role(db: Session) -> ServiceRole:
    return ServiceRole(db)

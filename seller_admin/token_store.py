"""Persistence for Walmart token rows.

Every write to walmart_tokens goes through WalmartTokenStore.upsert. Rows are
returned detached from their session; they are plain snapshots.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker

from .database import get_db_session
from .models import WalmartToken, utcnow

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class WalmartTokenStore:
    """Insert-or-replace, select and delete of the per-user token row."""

    def __init__(self, session_factory: sessionmaker | None = None):
        self._session_factory = session_factory

    def upsert(
        self,
        user_id: str,
        *,
        access_token: str,
        refresh_token: str | None,
        token_type: str,
        expires_in: int,
        expires_at: datetime,
        scope: str | None,
        seller_id: str | None,
    ) -> WalmartToken:
        """Create the user's row or overwrite every token field of the existing one."""
        fields = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": token_type,
            "expires_in": expires_in,
            "expires_at": expires_at,
            "scope": scope,
            "seller_id": seller_id,
        }

        with get_db_session(self._session_factory) as db_session:
            insert = _UPSERT_INSERTS.get(db_session.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(WalmartToken).values(user_id=user_id, **fields)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[WalmartToken.user_id],
                    set_={**fields, "updated_at": utcnow()},
                )
                db_session.execute(stmt)
                token_row = db_session.scalars(
                    select(WalmartToken)
                    .filter_by(user_id=user_id)
                    .execution_options(populate_existing=True)
                ).one()
            else:
                token_row = db_session.query(WalmartToken).filter_by(user_id=user_id).one_or_none()
                if not token_row:
                    token_row = WalmartToken(user_id=user_id)
                    db_session.add(token_row)
                for name, value in fields.items():
                    setattr(token_row, name, value)
                db_session.flush()

        logger.info(f"Saved Walmart tokens for user {user_id} (expires_at={expires_at.isoformat()})")
        return token_row

    def get(self, user_id: str) -> WalmartToken | None:
        """Return the user's row, or None when there is none."""
        with get_db_session(self._session_factory) as db_session:
            return db_session.query(WalmartToken).filter_by(user_id=user_id).one_or_none()

    def delete(self, user_id: str) -> bool:
        """Delete the user's row. Returns False when there was nothing to delete."""
        with get_db_session(self._session_factory) as db_session:
            deleted = db_session.query(WalmartToken).filter_by(user_id=user_id).delete()

        if deleted:
            logger.info(f"Deleted Walmart tokens for user {user_id}")
        return bool(deleted)

"""
User identity mirror.
- get_or_create_user(user_id, email)
- get_user(user_id)
- find_user_by_email(email)

Rows are written whenever an access token is verified, so the webhook path
can map a Stripe customer's email back to an application user.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, insert, update, func
from sqlalchemy.exc import IntegrityError

from auroai.core.database import get_db_session, users as app_users
from auroai.models.user import UserAccount


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email or not email.strip():
        return None
    return email.strip().lower()


def get_user(user_id: str) -> Optional[UserAccount]:
    with get_db_session() as session:
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        if not row:
            return None
        return UserAccount(user_id=row.user_id, email=row.email)


def find_user_by_email(email: Optional[str]) -> Optional[UserAccount]:
    normalized = normalize_email(email)
    if not normalized:
        return None
    with get_db_session() as session:
        row = session.execute(
            select(app_users)
            .where(func.lower(app_users.c.email) == normalized)
            .order_by(app_users.c.created_at)
            .limit(1)
        ).first()
        if not row:
            return None
        return UserAccount(user_id=row.user_id, email=row.email)


def get_or_create_user(user_id: str, email: Optional[str] = None) -> UserAccount:
    """Upsert the identity row, refreshing email and last_seen_at."""
    now = datetime.now(timezone.utc)
    normalized = normalize_email(email)

    existing = get_user(user_id)
    if existing is None:
        try:
            with get_db_session() as session:
                session.execute(
                    insert(app_users).values(
                        user_id=user_id,
                        email=normalized,
                        created_at=now,
                        last_seen_at=now,
                    )
                )
            return UserAccount(user_id=user_id, email=normalized)
        except IntegrityError:
            # Inserted by a concurrent request; fall through to the update
            pass

    values = {"last_seen_at": now}
    if normalized:
        values["email"] = normalized
    with get_db_session() as session:
        session.execute(update(app_users).where(app_users.c.user_id == user_id).values(**values))
    return UserAccount(user_id=user_id, email=normalized or (existing.email if existing else None))

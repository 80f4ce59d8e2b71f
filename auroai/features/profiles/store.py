"""
User record store for subscription profiles.

Writes are scoped to one user's ``profiles`` row. Subscription fields are
written together in one statement so readers never see a half-applied
reconciliation; concurrent writers for the same user are last-write-wins.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from auroai.core.database import get_db_session, profiles, users
from auroai.features.plans.service import DEFAULT_PLAN_ID, get_plan
from auroai.models.profile import SubscriptionProfile


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _default_max_credits() -> int:
    plan = get_plan(DEFAULT_PLAN_ID)
    return plan.monthly_credits if plan and plan.monthly_credits is not None else 0


def _row_to_profile(row) -> SubscriptionProfile:
    return SubscriptionProfile(
        user_id=row.id,
        current_plan=row.current_plan,
        plan_expires_at=_as_utc(row.plan_expires_at),
        subscribed=bool(row.subscribed),
        credits_used=row.credits_used,
        max_credits=row.max_credits,
        full_name=row.full_name,
        whatsapp_number=row.whatsapp_number,
        whatsapp_connected=bool(row.whatsapp_connected),
        updated_at=_as_utc(row.updated_at),
    )


class ProfileStore:
    """SQLAlchemy-backed access to the ``profiles`` table."""

    def __init__(self, session_factory=get_db_session):
        self._session = session_factory

    def get(self, user_id: str) -> Optional[SubscriptionProfile]:
        with self._session() as session:
            row = session.execute(select(profiles).where(profiles.c.id == user_id)).first()
            return _row_to_profile(row) if row else None

    def ensure(self, user_id: str, full_name: Optional[str] = None) -> SubscriptionProfile:
        """Return the user's profile, creating it with default plan values if absent."""
        existing = self.get(user_id)
        if existing:
            return existing
        try:
            self._insert(user_id, {"full_name": full_name, "current_plan": DEFAULT_PLAN_ID})
        except IntegrityError:
            # only a concurrent insert of the same row is benign
            existing = self.get(user_id)
            if existing is None:
                raise
            return existing
        return self.get(user_id)

    def write_subscription(
        self,
        user_id: str,
        current_plan: str,
        plan_expires_at: datetime,
        subscribed: bool,
    ) -> SubscriptionProfile:
        """Upsert the subscription fields for one user as a single row write."""
        values = {
            "current_plan": current_plan,
            "plan_expires_at": plan_expires_at,
            "subscribed": subscribed,
            "updated_at": datetime.now(timezone.utc),
        }
        if not self._update(user_id, values):
            try:
                self._insert(user_id, values)
            except IntegrityError:
                if not self._update(user_id, values):
                    raise
        return self.get(user_id)

    def update_fields(self, user_id: str, **values: Any) -> Optional[SubscriptionProfile]:
        """Update non-subscription fields (name, WhatsApp state) on an existing row."""
        values["updated_at"] = datetime.now(timezone.utc)
        if not self._update(user_id, values):
            return None
        return self.get(user_id)

    def _insert(self, user_id: str, values: Dict[str, Any]) -> None:
        """Insert the profile row, adding a bare app_users parent when the user was never mirrored."""
        with self._session() as session:
            mirrored = session.execute(select(users.c.user_id).where(users.c.user_id == user_id)).first()
            if mirrored is None:
                session.execute(insert(users).values(user_id=user_id))
            session.execute(insert(profiles).values(id=user_id, max_credits=_default_max_credits(), **values))

    def _update(self, user_id: str, values: Dict[str, Any]) -> bool:
        with self._session() as session:
            result = session.execute(
                update(profiles).where(profiles.c.id == user_id).values(**values)
            )
            return result.rowcount > 0

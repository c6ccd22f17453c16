"""
holidaymode/features/plans/service.py

Plan tier lookup for holiday allowances.

Plan assignment is owned by billing; this module only reads (and, for
seeding and tests, writes) the user_plans row. Users without a row are on
the free plan.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, insert, update
from sqlalchemy.orm import Session

from holidaymode.core.database import get_db_session, user_plans
from holidaymode.features.holidays.allowance import plan_allowance
from holidaymode.models.plan import PlanAllowance, PlanTier

logger = logging.getLogger("holidaymode")


def _tier_from_plan_id(plan_id: Optional[str]) -> PlanTier:
    if plan_id is None:
        return PlanTier.FREE
    try:
        return PlanTier(plan_id)
    except ValueError:
        logger.warning(f"Unknown plan_id '{plan_id}', treating as free")
        return PlanTier.FREE


def read_plan_tier(session: Session, user_id: str, *, for_update: bool = False) -> PlanTier:
    """Read a user's tier inside an existing session.

    With for_update the plan row is locked for the rest of the transaction,
    serializing concurrent holiday creation for the same user.
    """
    stmt = select(user_plans.c.plan_id).where(user_plans.c.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = session.execute(stmt).first()
    return _tier_from_plan_id(row.plan_id if row else None)


def get_user_plan_tier(user_id: str) -> PlanTier:
    with get_db_session() as session:
        return read_plan_tier(session, user_id)


def get_user_allowance(user_id: str) -> PlanAllowance:
    return plan_allowance(get_user_plan_tier(user_id))


def assign_plan(user_id: str, tier: PlanTier) -> PlanTier:
    """
    Assign plan to user (creates or updates).

    Args:
        user_id: User to assign plan to
        tier: Plan tier to assign

    Returns:
        The assigned tier
    """
    now = datetime.now(timezone.utc)

    with get_db_session() as session:
        existing = session.execute(
            select(user_plans).where(user_plans.c.user_id == user_id)
        ).first()

        if existing:
            session.execute(
                update(user_plans)
                .where(user_plans.c.user_id == user_id)
                .values(plan_id=tier.value, assigned_at=now)
            )
        else:
            session.execute(
                insert(user_plans).values(
                    user_id=user_id,
                    plan_id=tier.value,
                    assigned_at=now
                )
            )

    return tier

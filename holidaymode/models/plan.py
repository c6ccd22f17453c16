"""
holidaymode/models/plan.py

Plan tiers and the holiday allowance each tier grants.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class PlanAllowance(BaseModel):
    """
    Holiday allowance for a plan tier.

    None means unlimited. Callers must branch on None explicitly rather
    than compare against a magic number.
    """
    model_config = ConfigDict(frozen=True)

    tier: PlanTier
    periods_per_year: Optional[int] = Field(default=None, ge=0)
    max_duration_days: Optional[int] = Field(default=None, ge=1)

    @property
    def is_unlimited(self) -> bool:
        return self.periods_per_year is None and self.max_duration_days is None


class YearlyUsage(BaseModel):
    """Holiday usage within one calendar year."""
    model_config = ConfigDict(frozen=True)

    year: int
    holidays_this_year: int = 0
    total_days_this_year: int = 0

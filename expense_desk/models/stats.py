from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Statistic(BaseModel):
    """Server-computed aggregate for one category. Never accumulated locally."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    category: str
    count: int = Field(0, ge=0)
    total_amount: float = 0.0
    total_paid: float = 0.0
    pending_amount: float = 0.0
    payment_percentage: float = 0.0


class StatsOverview(BaseModel):
    """Dashboard header figures summed across categories."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_count: int = 0
    total_amount: float = 0.0
    pending_amount: float = 0.0

    @classmethod
    def from_stats(cls, stats: Iterable[Statistic]) -> "StatsOverview":
        overview = cls()
        for stat in stats:
            overview.total_count += stat.count
            overview.total_amount += stat.total_amount
            overview.pending_amount += stat.pending_amount
        return overview

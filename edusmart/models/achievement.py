from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Achievement:
    """One-time unlock.  At most one per (user_id, type)."""

    user_id: str
    type: str  # first-resource|resource-explorer|...|reached-expert
    title: str
    description: str
    xp_awarded: int
    unlocked_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.type)

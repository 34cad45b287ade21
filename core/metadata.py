"""
Role-connection metadata — the fixed Discord schema and the Fitbit → Discord
projection.

The keys below must match the schema registered for the application in
the Discord developer portal:

    averagedailysteps   integer   (number_gt / number_lt)
    ambassador          boolean
    membersince         datetime  (ISO-8601 date)
    iscoach             boolean
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from utils.schemas import FitbitProfile

METADATA_KEYS = ("averagedailysteps", "ambassador", "membersince", "iscoach")


class MetadataRecord(BaseModel):
    """Flat metadata pushed to Discord.  ``None`` means "clear this key"."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    averagedailysteps: Optional[int] = None
    ambassador: Optional[bool] = None
    membersince: Optional[str] = None
    iscoach: Optional[bool] = None

    @classmethod
    def empty(cls) -> "MetadataRecord":
        return cls()

    def to_payload(self) -> Dict[str, Any]:
        # exclude_none must stay off: absent keys would leave stale roles on Discord
        return self.model_dump(exclude_none=False)


def transform(profile: FitbitProfile) -> MetadataRecord:
    """Project the Fitbit profile onto the Discord metadata schema."""
    user = profile.user
    return MetadataRecord(
        averagedailysteps=user.average_daily_steps,
        ambassador=user.ambassador,
        membersince=user.member_since,
        iscoach=user.is_coach,
    )

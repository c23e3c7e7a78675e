from careteam.models.audit_log import AuditLog
from careteam.models.care_team import CareTeam
from careteam.models.care_team_member import CareTeamMember
from careteam.models.journey import (
    JourneyEntry,
    JourneySection,
    JourneySectionRevision,
    JourneySnapshot,
    PatientJourney,
)
from careteam.models.user import User

__all__ = [
    "AuditLog",
    "CareTeam",
    "CareTeamMember",
    "JourneyEntry",
    "JourneySection",
    "JourneySectionRevision",
    "JourneySnapshot",
    "PatientJourney",
    "User",
]

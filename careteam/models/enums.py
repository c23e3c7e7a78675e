from enum import StrEnum


class AccessLevel(StrEnum):
    FULL = "FULL"
    READ_ONLY = "READ_ONLY"


class TeamRole(StrEnum):
    CAREGIVER = "CAREGIVER"
    FAMILY = "FAMILY"
    PHYSICIAN = "PHYSICIAN"


class UserRole(StrEnum):
    CAREGIVER = "CAREGIVER"
    FAMILY = "FAMILY"
    PHYSICIAN = "PHYSICIAN"
    PATIENT = "PATIENT"


class JourneyEntryType(StrEnum):
    UPDATE = "UPDATE"
    MILESTONE = "MILESTONE"
    MED_CHANGE = "MED_CHANGE"
    APPOINTMENT = "APPOINTMENT"
    BEHAVIOR = "BEHAVIOR"
    SAFETY = "SAFETY"
    MOOD_EVENT = "MOOD_EVENT"
    ROUTINE_EVENT = "ROUTINE_EVENT"
    TASK_EVENT = "TASK_EVENT"
    BURDEN_EVENT = "BURDEN_EVENT"
    NOTE_EVENT = "NOTE_EVENT"

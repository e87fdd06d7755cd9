"""Collection keys shared by every SafeLink feature.

Each key holds one independent JSON blob. Changing the payload layout behind a
key is a breaking change for existing users unless a migration is registered
for it (see ``safelink.storage.migrations``).
"""

from __future__ import annotations

from enum import Enum


class StorageKey(str, Enum):
    cycle_data = "cycle_data"
    chat_history = "chat_history"
    emergency_contacts = "emergency_contacts"
    emergency_logs = "emergency_logs"
    quiz_stats = "quiz_stats"
    consent_game_stats = "consent_game_stats"
    mentors = "mentors"
    mentorship_requests = "mentorship_requests"
    chat_messages = "chat_messages"
    srhr_stories = "srhr_stories"
    clinics = "clinics"
    safe_spaces = "safe_spaces"
    inclusive_services = "inclusive_services"
    inclusive_resources = "inclusive_resources"
    support_groups = "support_groups"


KNOWN_KEYS: frozenset[str] = frozenset(k.value for k in StorageKey)


def is_known_key(key: str) -> bool:
    return key in KNOWN_KEYS

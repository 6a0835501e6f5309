from __future__ import annotations

from typing import Dict, Tuple

# Local cache
RIDE_REQUESTS_CACHE_KEY = "rideRequests"
DEFAULT_CACHE_FILENAME = "local_storage.json"

# Remote store
RIDE_REQUESTS_TABLE = "ride_requests"
SUPPORTED_REMOTE_KINDS: Tuple[str, ...] = ("supabase", "sqlite", "memory")
DEFAULT_REMOTE_KIND = "memory"

# Display defaults for cached entries with missing fields
DEFAULT_STUDENT_NAME = "Unknown"
DEFAULT_STUDENT_EMAIL = "unknown@email.com"
DEFAULT_DISABILITY_TYPE = "Not specified"

# Values synthesized for rows read back from the remote store
PLACEHOLDER_EMAIL_DOMAIN = "example.com"
REMOTE_NOTES = "From database"

# Toast copy
UPDATE_TOAST_TITLE = "Ride Request Updated"

STATUS_BADGE_COLORS: Dict[str, Tuple[str, str]] = {
    "accepted": ("#4C51BF", "#FFFFFF"),
    "pending": ("#EDF2F7", "#2D3748"),
    "completed": ("#FFFFFF", "#2D3748"),
    "declined": ("#E53E3E", "#FFFFFF"),
}

TABLE_HEADERS: Tuple[str, ...] = (
    "Student",
    "Pickup",
    "Destination",
    "Date & Time",
    "Disability",
    "Status",
    "Actions",
)

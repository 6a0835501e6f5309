"""
Record shapes for ride requests and the conversions between them.

The dashboard keeps ride requests in a display shape (`RideRequest`, cached
as camelCase JSON) while the hosted store uses `ride_requests` rows. The two
are not symmetric:

* local -> remote drops ``disabilityType`` and ``additionalNotes`` and derives
  ``student_id`` from the email prefix.
* remote -> local invents a name and email from ``student_id`` and fills the
  notes/disability columns with constants.
* ``declined`` is stored remotely as ``rejected``; ``rejected`` is not a local
  status, so it reads back as ``pending``.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from .core.constants import (
    DEFAULT_DISABILITY_TYPE,
    DEFAULT_STUDENT_EMAIL,
    DEFAULT_STUDENT_NAME,
    PLACEHOLDER_EMAIL_DOMAIN,
    REMOTE_NOTES,
)


_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:?\d{2}$|$)")

class RideStatus(str, enum.Enum):
    """Closed set of statuses shown on the driver dashboard."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    DECLINED = "declined"


class RideAction(str, enum.Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    COMPLETE = "complete"


RIDE_STATUS_VALUES: Tuple[str, ...] = tuple(status.value for status in RideStatus)

_ACTION_TO_STATUS: Dict[RideAction, RideStatus] = {
    RideAction.ACCEPT: RideStatus.ACCEPTED,
    RideAction.DECLINE: RideStatus.DECLINED,
    RideAction.COMPLETE: RideStatus.COMPLETED,
}
_ACTIONS_BY_STATUS: Dict[RideStatus, Tuple[RideAction, ...]] = {
    RideStatus.PENDING: (RideAction.ACCEPT, RideAction.DECLINE),
    RideStatus.ACCEPTED: (RideAction.COMPLETE,),
}
_REMOTE_DECLINED = "rejected"


@dataclass(frozen=True)
class RideRequest:
    id: str
    student_name: str
    student_email: str
    pickup_location: str
    destination: str
    date: str
    time: str
    status: RideStatus
    disability_type: str
    additional_notes: Optional[str] = None

    def with_status(self, status: RideStatus) -> "RideRequest":
        return replace(self, status=status)


# Status helpers -----------------------------------------------------------------
def validate_status(value: Any) -> RideStatus:
    """Clamp any input to the local enumeration, defaulting to pending."""
    if isinstance(value, RideStatus):
        return value
    try:
        return RideStatus(value)
    except (TypeError, ValueError):
        return RideStatus.PENDING


def coerce_action(action: RideAction | str) -> RideAction:
    if isinstance(action, RideAction):
        return action
    try:
        return RideAction(str(action).strip().lower())
    except ValueError:
        allowed = ", ".join(item.value for item in RideAction)
        raise ValueError(f"Unknown ride action {action!r}. Allowed: {allowed}") from None


def action_to_status(action: RideAction | str) -> RideStatus:
    return _ACTION_TO_STATUS[coerce_action(action)]


def available_actions(status: RideStatus | str) -> Tuple[RideAction, ...]:
    """Actions a driver can take on a request in the given status."""
    return _ACTIONS_BY_STATUS.get(validate_status(status), ())


def local_status_to_remote(status: RideStatus | str) -> str:
    normalized = validate_status(status)
    if normalized is RideStatus.DECLINED:
        return _REMOTE_DECLINED
    return normalized.value


def remote_status_to_local(status: Any) -> RideStatus:
    # "rejected" is intentionally not mapped back to declined.
    return validate_status(status)


# Time helpers -------------------------------------------------------------------
def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_display_date(moment: datetime) -> str:
    return f"{moment.month}/{moment.day}/{moment.year}"


def format_display_time(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"


def _local_now() -> datetime:
    return datetime.now().astimezone()


# Cache shape --------------------------------------------------------------------
def normalize_cached_request(
    entry: Dict[str, Any], *, now: Optional[datetime] = None
) -> RideRequest:
    """
    Build a RideRequest from a cached JSON object, filling defaults for
    every falsy field.
    """
    moment = now or _local_now()
    notes = entry.get("additionalNotes")
    return RideRequest(
        id=str(entry.get("id")),
        student_name=entry.get("studentName") or DEFAULT_STUDENT_NAME,
        student_email=entry.get("studentEmail") or DEFAULT_STUDENT_EMAIL,
        pickup_location=entry.get("pickupLocation") or "",
        destination=entry.get("destination") or "",
        date=entry.get("date") or format_display_date(moment),
        time=entry.get("time") or format_display_time(moment),
        status=validate_status(entry.get("status") or RideStatus.PENDING.value),
        disability_type=entry.get("disabilityType") or DEFAULT_DISABILITY_TYPE,
        additional_notes=notes,
    )


def request_to_cache_entry(request: RideRequest) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "id": request.id,
        "studentName": request.student_name,
        "studentEmail": request.student_email,
        "pickupLocation": request.pickup_location,
        "destination": request.destination,
        "date": request.date,
        "time": request.time,
        "status": request.status.value,
        "disabilityType": request.disability_type,
    }
    if request.additional_notes is not None:
        entry["additionalNotes"] = request.additional_notes
    return entry


# Remote shape -------------------------------------------------------------------
def remote_row_to_request(row: Dict[str, Any]) -> RideRequest:
    student_id = str(row.get("student_id") or "")
    created = parse_timestamp(row.get("created_at"))
    try:
        moment = created.astimezone() if created else _local_now()
    except (OverflowError, ValueError):
        # Shifting to UTC can leave datetime's year range.
        moment = _local_now()
    return RideRequest(
        id=str(row.get("id")),
        student_name=student_id or DEFAULT_STUDENT_NAME,
        student_email=f"{student_id}@{PLACEHOLDER_EMAIL_DOMAIN}",
        pickup_location=row.get("pickup_location") or "",
        destination=row.get("destination") or "",
        date=format_display_date(moment),
        time=format_display_time(moment),
        status=remote_status_to_local(row.get("status")),
        disability_type=DEFAULT_DISABILITY_TYPE,
        additional_notes=REMOTE_NOTES,
    )


def request_to_remote_row(
    request: RideRequest, *, timestamp: Optional[str] = None
) -> Dict[str, Any]:
    stamp = timestamp or utc_timestamp()
    return {
        "id": request.id,
        "student_id": request.student_email.split("@")[0],
        "driver_id": None,
        "pickup_location": request.pickup_location,
        "destination": request.destination,
        "status": local_status_to_remote(request.status),
        "created_at": stamp,
        "updated_at": stamp,
    }


def status_update_fields(
    status: RideStatus | str,
    *,
    driver_id: Optional[str],
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "status": local_status_to_remote(status),
        "driver_id": driver_id,
        "updated_at": timestamp or utc_timestamp(),
    }

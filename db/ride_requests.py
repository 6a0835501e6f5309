from __future__ import annotations

import enum
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .db_connection import DB_CONNECTION
from .protocol_db_server import (
    DBResponse,
    db_msg_status,
    db_response_type,
    error_response,
    ok_payload,
)


class RemoteRideStatus(str, enum.Enum):
    """Status values accepted by the ride_requests table."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"


REMOTE_STATUS_VALUES: Tuple[str, ...] = tuple(status.value for status in RemoteRideStatus)
RIDE_REQUEST_COLUMNS: Tuple[str, ...] = (
    "id",
    "student_id",
    "driver_id",
    "pickup_location",
    "destination",
    "status",
    "created_at",
    "updated_at",
)
_REQUIRED_COLUMNS = ("id", "student_id", "status")
_SCHEMA_READY = False


def init_ride_request_schema() -> None:
    """Create the ride_requests table mirrored from the hosted store."""
    global _SCHEMA_READY
    DB_CONNECTION.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS ride_requests (
            id TEXT PRIMARY KEY,
            student_id TEXT NOT NULL,
            driver_id TEXT,
            pickup_location TEXT NOT NULL DEFAULT '',
            destination TEXT NOT NULL DEFAULT '',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ({", ".join(repr(v) for v in REMOTE_STATUS_VALUES)})),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        );
        CREATE INDEX IF NOT EXISTS idx_ride_requests_status ON ride_requests(status);
        """
    )
    DB_CONNECTION.commit()
    _SCHEMA_READY = True


def _ensure_schema() -> None:
    if not _SCHEMA_READY:
        init_ride_request_schema()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_status(status: Any) -> Tuple[Optional[str], Optional[DBResponse]]:
    if isinstance(status, RemoteRideStatus):
        return status.value, None
    cleaned = str(status or "").strip().lower()
    if cleaned in REMOTE_STATUS_VALUES:
        return cleaned, None
    return None, error_response(
        f"Invalid ride request status: {status!r}. Allowed: {', '.join(REMOTE_STATUS_VALUES)}"
    )


def _validate_row(row: Dict[str, Any]) -> Tuple[Optional[Tuple[Any, ...]], Optional[DBResponse]]:
    if not isinstance(row, dict):
        return None, error_response("Ride request row must be a mapping.")
    missing = [column for column in _REQUIRED_COLUMNS if not row.get(column)]
    if missing:
        return None, error_response(f"Missing required fields: {', '.join(missing)}")
    status, status_error = _coerce_status(row.get("status"))
    if status_error:
        return None, status_error
    values = []
    for column in RIDE_REQUEST_COLUMNS:
        value = status if column == "status" else row.get(column)
        if column in ("pickup_location", "destination") and value is None:
            value = ""
        elif column in ("created_at", "updated_at") and not value:
            value = _utc_now()
        values.append(None if value is None else str(value))
    return tuple(values), None


def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {column: row[column] for column in RIDE_REQUEST_COLUMNS}


def list_ride_requests() -> DBResponse:
    """Return every ride request row, oldest first."""
    try:
        _ensure_schema()
        cur = DB_CONNECTION.execute(
            f"SELECT {', '.join(RIDE_REQUEST_COLUMNS)} FROM ride_requests ORDER BY created_at, id"
        )
        rows = [_row_to_dict(row) for row in cur.fetchall()]
    except sqlite3.Error as exc:
        return error_response(str(exc))
    return DBResponse(
        type=db_response_type.RIDE_REQUESTS_FOUND,
        status=db_msg_status.OK,
        payload=ok_payload(rows),
    )


def ride_request_exists(request_id: str) -> DBResponse:
    try:
        _ensure_schema()
        cur = DB_CONNECTION.execute(
            "SELECT id FROM ride_requests WHERE id = ? LIMIT 1", (str(request_id),)
        )
        found = cur.fetchone() is not None
    except sqlite3.Error as exc:
        return error_response(str(exc))
    return DBResponse(
        type=db_response_type.RIDE_REQUEST_EXISTS,
        status=db_msg_status.OK,
        payload=ok_payload({"id": str(request_id), "exists": found}),
    )


def create_ride_request(row: Dict[str, Any]) -> DBResponse:
    """Insert one ride request row. Duplicate ids are rejected."""
    values, validation_error = _validate_row(row)
    if validation_error:
        return validation_error
    try:
        _ensure_schema()
        with DB_CONNECTION:
            DB_CONNECTION.execute(
                f"""
                INSERT INTO ride_requests ({", ".join(RIDE_REQUEST_COLUMNS)})
                VALUES ({", ".join("?" for _ in RIDE_REQUEST_COLUMNS)})
                """,
                values,
            )
    except sqlite3.IntegrityError as exc:
        return error_response(f"Ride request {row.get('id')!r} could not be stored: {exc}")
    except sqlite3.Error as exc:
        return error_response(str(exc))
    return DBResponse(
        type=db_response_type.RIDE_REQUEST_CREATED,
        status=db_msg_status.OK,
        payload=ok_payload({"id": values[0]}),
    )


def insert_missing_ride_requests(rows: Iterable[Dict[str, Any]]) -> DBResponse:
    """
    Insert every row whose id is not stored yet, in a single transaction.
    Existing rows are left untouched.
    """
    prepared: List[Tuple[Any, ...]] = []
    for row in rows:
        values, validation_error = _validate_row(row)
        if validation_error:
            return validation_error
        prepared.append(values)
    if not prepared:
        return DBResponse(
            type=db_response_type.RIDE_REQUESTS_BACKFILLED,
            status=db_msg_status.OK,
            payload=ok_payload({"inserted": 0}),
        )
    try:
        _ensure_schema()
        before = DB_CONNECTION.total_changes
        with DB_CONNECTION:
            DB_CONNECTION.executemany(
                f"""
                INSERT INTO ride_requests ({", ".join(RIDE_REQUEST_COLUMNS)})
                VALUES ({", ".join("?" for _ in RIDE_REQUEST_COLUMNS)})
                ON CONFLICT(id) DO NOTHING
                """,
                prepared,
            )
        inserted = DB_CONNECTION.total_changes - before
    except sqlite3.Error as exc:
        return error_response(str(exc))
    return DBResponse(
        type=db_response_type.RIDE_REQUESTS_BACKFILLED,
        status=db_msg_status.OK,
        payload=ok_payload({"inserted": inserted}),
    )


def update_ride_request(
    request_id: str,
    *,
    status: RemoteRideStatus | str,
    driver_id: Optional[str],
    updated_at: str,
) -> DBResponse:
    """
    Set status, driver_id and updated_at on the row with the given id.
    Matching zero rows is not an error; the payload reports the count.
    """
    status_value, status_error = _coerce_status(status)
    if status_error:
        return status_error
    try:
        _ensure_schema()
        with DB_CONNECTION:
            cur = DB_CONNECTION.execute(
                """
                UPDATE ride_requests
                SET status = ?,
                    driver_id = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    status_value,
                    None if driver_id is None else str(driver_id),
                    updated_at,
                    str(request_id),
                ),
            )
    except sqlite3.Error as exc:
        return error_response(str(exc))
    return DBResponse(
        type=db_response_type.RIDE_REQUEST_UPDATED,
        status=db_msg_status.OK,
        payload=ok_payload({"id": str(request_id), "updated": cur.rowcount}),
    )


def get_ride_request(request_id: str) -> DBResponse:
    try:
        _ensure_schema()
        cur = DB_CONNECTION.execute(
            f"SELECT {', '.join(RIDE_REQUEST_COLUMNS)} FROM ride_requests WHERE id = ?",
            (str(request_id),),
        )
        row = cur.fetchone()
    except sqlite3.Error as exc:
        return error_response(str(exc))
    if row is None:
        return error_response("Ride request not found.", db_msg_status.NOT_FOUND)
    return DBResponse(
        type=db_response_type.RIDE_REQUESTS_FOUND,
        status=db_msg_status.OK,
        payload=ok_payload(_row_to_dict(row)),
    )

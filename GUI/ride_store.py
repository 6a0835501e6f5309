"""
Clients for the hosted ride request store.

`SupabaseRideStore` talks to the PostgREST endpoint of a hosted Supabase
project. `SQLiteRideStore` serves the same table from the local `db` package
so the dashboard can run against a developer database, and
`InMemoryRideStore` keeps rows in memory for demos and offline use. All three
expose the same operations and report every failure as `RideStoreError`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests
from dotenv import load_dotenv

from .core.constants import (
    DEFAULT_REMOTE_KIND,
    RIDE_REQUESTS_TABLE,
    SUPPORTED_REMOTE_KINDS,
)
from .core.logger import logger, scrub_sensitive

_ENV_CANDIDATES = [
    Path(__file__).resolve().parent / ".env",
    Path(__file__).resolve().parents[1] / "db" / ".env",
]
for env_path in _ENV_CANDIDATES:
    if env_path.exists():
        load_dotenv(env_path, override=False)


class RideStoreError(RuntimeError):
    """Raised when the remote store rejects a call or cannot be reached."""


class RideStore:
    """Operations the dashboard needs from the ride_requests table."""

    name = "ride-store"

    def select_all(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def exists(self, request_id: str) -> bool:
        raise NotImplementedError

    def insert(self, row: Dict[str, Any]) -> None:
        raise NotImplementedError

    def update(
        self,
        request_id: str,
        *,
        status: str,
        driver_id: Optional[str],
        updated_at: str,
    ) -> None:
        raise NotImplementedError

    def insert_missing(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Insert rows whose id is not stored yet; return how many were added."""
        inserted = 0
        for row in rows:
            if not self.exists(row["id"]):
                self.insert(row)
                inserted += 1
        return inserted


# Hosted store -------------------------------------------------------------------
class SupabaseRideStore(RideStore):
    name = "supabase"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        table: str = RIDE_REQUESTS_TABLE,
        timeout: float = 8.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        base_url = (url if url is not None else os.getenv("SUPABASE_URL", "")).strip()
        key = (api_key if api_key is not None else os.getenv("SUPABASE_ANON_KEY", "")).strip()
        if not base_url or not key:
            raise RideStoreError("SUPABASE_URL and SUPABASE_ANON_KEY must be configured.")
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.endpoint = f"{self.base_url}/rest/v1/{table}"
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def select_all(self) -> List[Dict[str, Any]]:
        rows = self._send("GET", params={"select": "*"})
        if not isinstance(rows, list):
            raise RideStoreError("Ride store returned an unexpected payload for select.")
        return rows

    def exists(self, request_id: str) -> bool:
        rows = self._send(
            "GET",
            params={"select": "id", "id": f"eq.{request_id}", "limit": "1"},
        )
        return bool(rows)

    def insert(self, row: Dict[str, Any]) -> None:
        self._send("POST", payload=[row], prefer="return=minimal")

    def update(
        self,
        request_id: str,
        *,
        status: str,
        driver_id: Optional[str],
        updated_at: str,
    ) -> None:
        self._send(
            "PATCH",
            params={"id": f"eq.{request_id}"},
            payload={"status": status, "driver_id": driver_id, "updated_at": updated_at},
            prefer="return=minimal",
        )

    def insert_missing(self, rows: Iterable[Dict[str, Any]]) -> int:
        batch = list(rows)
        if not batch:
            return 0
        created = self._send(
            "POST",
            params={"on_conflict": "id"},
            payload=batch,
            prefer="resolution=ignore-duplicates,return=representation",
        )
        return len(created) if isinstance(created, list) else 0

    # Internal helpers -----------------------------------------------------------
    def _send(
        self,
        method: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        logger.info(
            "[Client->Store] %s %s params=%s payload=%s",
            method,
            self.table,
            params or {},
            scrub_sensitive(payload),
        )
        try:
            response = self._session.request(
                method,
                self.endpoint,
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(
                "HTTP error while calling %s %s: %s", method, self.endpoint, exc
            )
            raise RideStoreError(f"Unable to reach ride store at {self.base_url}: {exc}") from exc

        logger.info(
            "[Client<-Store] %s %s status=%s", method, self.table, response.status_code
        )
        if response.status_code >= 400:
            message = ""
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = str(body.get("message") or body.get("error") or "")
            raise RideStoreError(message or f"Ride store HTTP {response.status_code}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RideStoreError("Ride store returned invalid JSON.") from exc


# Local development store --------------------------------------------------------
class SQLiteRideStore(RideStore):
    name = "sqlite"

    def __init__(self) -> None:
        # Importing the db package opens the sqlite connection, so defer it
        # until a SQLite-backed store is actually requested.
        from db import ride_requests as ride_request_db

        self._db = ride_request_db
        self._db.init_ride_request_schema()

    def select_all(self) -> List[Dict[str, Any]]:
        return self._unwrap(self._db.list_ride_requests())

    def exists(self, request_id: str) -> bool:
        output = self._unwrap(self._db.ride_request_exists(request_id))
        return bool(output["exists"])

    def insert(self, row: Dict[str, Any]) -> None:
        self._unwrap(self._db.create_ride_request(row))

    def update(
        self,
        request_id: str,
        *,
        status: str,
        driver_id: Optional[str],
        updated_at: str,
    ) -> None:
        self._unwrap(
            self._db.update_ride_request(
                request_id, status=status, driver_id=driver_id, updated_at=updated_at
            )
        )

    def insert_missing(self, rows: Iterable[Dict[str, Any]]) -> int:
        output = self._unwrap(self._db.insert_missing_ride_requests(list(rows)))
        return int(output["inserted"])

    def _unwrap(self, response: Any) -> Any:
        if response.status != self._db.db_msg_status.OK:
            message = response.payload.get("error") or "Ride store rejected the request."
            raise RideStoreError(message)
        return response.payload.get("output")


# Offline store ------------------------------------------------------------------
class InMemoryRideStore(RideStore):
    """
    Drop-in store that keeps rows in a dict. Setting `online` to False makes
    every call fail the way an unreachable backend would.
    """

    name = "memory"

    def __init__(
        self,
        rows: Optional[Iterable[Dict[str, Any]]] = None,
        *,
        online: bool = True,
    ) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        for row in rows or []:
            self.rows[str(row["id"])] = dict(row)
        self.online = online

    def select_all(self) -> List[Dict[str, Any]]:
        self._require_online()
        return [dict(row) for row in self.rows.values()]

    def exists(self, request_id: str) -> bool:
        self._require_online()
        return str(request_id) in self.rows

    def insert(self, row: Dict[str, Any]) -> None:
        self._require_online()
        key = str(row["id"])
        if key in self.rows:
            raise RideStoreError(f"Ride request {key!r} already exists.")
        self.rows[key] = dict(row)

    def update(
        self,
        request_id: str,
        *,
        status: str,
        driver_id: Optional[str],
        updated_at: str,
    ) -> None:
        self._require_online()
        row = self.rows.get(str(request_id))
        if row is None:
            return
        row.update({"status": status, "driver_id": driver_id, "updated_at": updated_at})

    def _require_online(self) -> None:
        if not self.online:
            raise RideStoreError("In-memory ride store is offline.")


def build_ride_store(kind: Optional[str] = None) -> RideStore:
    """Create the store selected by `kind` or RIDEACCESS_REMOTE."""
    chosen = (kind or os.getenv("RIDEACCESS_REMOTE") or DEFAULT_REMOTE_KIND).strip().lower()
    if chosen not in SUPPORTED_REMOTE_KINDS:
        raise RideStoreError(
            f"Unknown ride store {chosen!r}. Choose one of: {', '.join(SUPPORTED_REMOTE_KINDS)}"
        )
    if chosen == "supabase":
        return SupabaseRideStore()
    if chosen == "sqlite":
        return SQLiteRideStore()
    return InMemoryRideStore()

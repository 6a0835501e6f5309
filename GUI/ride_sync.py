"""
Keeps the driver's ride request list in step with the remote store.

Loading prefers the remote store. When it is unreachable or empty, the list
comes from the local cache instead, and any cached entries the remote store
lacks are pushed back to it. Driver actions update the local cache first and
then fire an independent remote update. The two sides are never reconciled
and remote failures are only logged.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

from .core.constants import RIDE_REQUESTS_CACHE_KEY, UPDATE_TOAST_TITLE
from .core.logger import logger
from .local_cache import LocalCache
from .ride_mapping import (
    RideAction,
    RideRequest,
    RideStatus,
    action_to_status,
    coerce_action,
    normalize_cached_request,
    remote_row_to_request,
    request_to_cache_entry,
    request_to_remote_row,
    status_update_fields,
)
from .ride_store import RideStore, RideStoreError
from .session import DriverIdentity

Notifier = Callable[[str, str], None]


def _log_notification(title: str, description: str) -> None:
    logger.info("%s: %s", title, description)


class RideRequestSynchronizer:
    def __init__(
        self,
        store: RideStore,
        cache: LocalCache,
        *,
        identity: Optional[DriverIdentity] = None,
        notifier: Optional[Notifier] = None,
        bulk_backfill: bool = False,
    ) -> None:
        self.store = store
        self.cache = cache
        self.identity = identity
        self.notifier: Notifier = notifier or _log_notification
        self.bulk_backfill = bulk_backfill
        self.requests: List[RideRequest] = []

    # Public API -----------------------------------------------------------------
    def load(self) -> List[RideRequest]:
        """Populate `requests` from the remote store, else from the local cache."""
        remote_requests = self._load_remote()
        if remote_requests:
            self.requests = remote_requests
            return self.requests

        self.requests = self._load_cached()
        if self.requests:
            self._backfill_remote(self.requests)
        return self.requests

    def refresh(self) -> List[RideRequest]:
        return self.load()

    def apply_action(self, request_id: str, action: RideAction | str) -> List[RideRequest]:
        """
        Move one request to the status implied by `action`. The local list and
        cache change immediately; the remote update is best effort.
        """
        chosen = coerce_action(action)
        new_status = action_to_status(chosen)

        updated = [
            request.with_status(new_status) if request.id == request_id else request
            for request in self.requests
        ]
        self._write_cache(updated)
        self.requests = updated

        driver_id = self.identity.user_id if self.identity else None
        fields = status_update_fields(new_status, driver_id=driver_id)
        try:
            self.store.update(request_id, **fields)
        except RideStoreError as exc:
            logger.error("Error updating ride request %s in the ride store: %s", request_id, exc)

        self.notifier(UPDATE_TOAST_TITLE, f"Ride request has been {new_status.value}.")
        return self.requests

    def accept(self, request_id: str) -> List[RideRequest]:
        return self.apply_action(request_id, RideAction.ACCEPT)

    def decline(self, request_id: str) -> List[RideRequest]:
        return self.apply_action(request_id, RideAction.DECLINE)

    def complete(self, request_id: str) -> List[RideRequest]:
        return self.apply_action(request_id, RideAction.COMPLETE)

    def count_with_status(self, status: RideStatus) -> int:
        return sum(1 for request in self.requests if request.status is status)

    @property
    def completed_count(self) -> int:
        return self.count_with_status(RideStatus.COMPLETED)

    @property
    def pending_count(self) -> int:
        return self.count_with_status(RideStatus.PENDING)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Cache-shaped copy of the current list."""
        return [request_to_cache_entry(request) for request in self.requests]

    # Internal helpers -----------------------------------------------------------
    def _load_remote(self) -> List[RideRequest]:
        # Malformed rows surface as AttributeError/TypeError while mapping.
        try:
            rows = self.store.select_all()
            if not rows:
                return []
            requests = [remote_row_to_request(row) for row in rows]
        except (RideStoreError, AttributeError, TypeError) as exc:
            logger.error("Error loading ride requests from the ride store: %s", exc)
            return []
        logger.info("Loaded %d ride request(s) from the %s store.", len(requests), self.store.name)
        return requests

    def _read_cache_entries(self) -> List[Any]:
        raw = self.cache.get_item(RIDE_REQUESTS_CACHE_KEY) or "[]"
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Cached ride requests are not valid JSON: %s", exc)
            return []
        if not isinstance(entries, list):
            logger.warning("Cached ride requests are not a list; ignoring them.")
            return []
        return entries

    def _load_cached(self) -> List[RideRequest]:
        requests: List[RideRequest] = []
        for entry in self._read_cache_entries():
            if not isinstance(entry, dict) or entry.get("id") in (None, ""):
                logger.warning("Skipping cached ride request without an id: %r", entry)
                continue
            requests.append(normalize_cached_request(entry))
        logger.info("Loaded %d ride request(s) from the local cache.", len(requests))
        return requests

    def _write_cache(self, requests: List[RideRequest]) -> None:
        payload = [request_to_cache_entry(request) for request in requests]
        self.cache.set_item(RIDE_REQUESTS_CACHE_KEY, json.dumps(payload))

    def _backfill_remote(self, requests: List[RideRequest]) -> None:
        if self.bulk_backfill:
            try:
                inserted = self.store.insert_missing(
                    [request_to_remote_row(request) for request in requests]
                )
            except RideStoreError as exc:
                logger.error("Error syncing ride requests to the ride store: %s", exc)
                return
        else:
            inserted = 0
            for request in requests:
                try:
                    if self.store.exists(request.id):
                        continue
                    self.store.insert(request_to_remote_row(request))
                except RideStoreError as exc:
                    logger.error("Error syncing ride request %s to the ride store: %s", request.id, exc)
                    continue
                inserted += 1
        if inserted:
            logger.info("Synced %d cached ride request(s) to the %s store.", inserted, self.store.name)

"""Entry point for the RideAccess driver dashboard."""

from __future__ import annotations

import argparse
import os
from typing import List, Optional

from .core.constants import DEFAULT_REMOTE_KIND, SUPPORTED_REMOTE_KINDS
from .local_cache import LocalCache
from .ride_store import build_ride_store
from .ride_sync import RideRequestSynchronizer
from .session import DriverIdentity, identity_from_env


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the RideAccess driver dashboard.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--remote",
        default=os.getenv("RIDEACCESS_REMOTE") or DEFAULT_REMOTE_KIND,
        choices=list(SUPPORTED_REMOTE_KINDS),
        help="Ride request store backend (default: %(default)s).",
    )
    parser.add_argument(
        "--cache-path",
        default=None,
        help="Local cache file (default: RIDEACCESS_CACHE_PATH or ~/.rideaccess).",
    )
    parser.add_argument(
        "--bulk-backfill",
        action="store_true",
        default=_env_flag("RIDEACCESS_BULK_BACKFILL"),
        help="Push cached requests with one insert-missing call instead of per-row checks.",
    )
    parser.add_argument("--driver-id", default=None, help="Signed-in driver id.")
    parser.add_argument("--first-name", default="", help="Driver first name.")
    parser.add_argument("--last-name", default="", help="Driver last name.")
    parser.add_argument("--email", default="", help="Driver email.")
    return parser.parse_args(argv)


def _identity_from_args(args: argparse.Namespace) -> Optional[DriverIdentity]:
    if args.driver_id:
        return DriverIdentity(
            user_id=args.driver_id,
            first_name=args.first_name,
            last_name=args.last_name,
            email=args.email,
        )
    return identity_from_env()


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    identity = _identity_from_args(args)
    synchronizer = RideRequestSynchronizer(
        build_ride_store(args.remote),
        LocalCache(args.cache_path),
        identity=identity,
        bulk_backfill=args.bulk_backfill,
    )

    from .gui import run

    run(synchronizer, identity)


if __name__ == "__main__":
    main()

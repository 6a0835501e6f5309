from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env", override=False)


@dataclass(frozen=True)
class DriverIdentity:
    """The signed-in driver as exposed by the identity provider."""

    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["DriverIdentity"]:
        if not payload:
            return None
        user_id = payload.get("id") or payload.get("user_id")
        if not user_id:
            return None
        return cls(
            user_id=str(user_id),
            first_name=str(payload.get("first_name") or "").strip(),
            last_name=str(payload.get("last_name") or "").strip(),
            email=str(payload.get("email") or "").strip(),
        )


def identity_from_env() -> Optional[DriverIdentity]:
    return DriverIdentity.from_payload(
        {
            "id": (os.getenv("RIDEACCESS_DRIVER_ID") or "").strip(),
            "first_name": os.getenv("RIDEACCESS_DRIVER_FIRST_NAME"),
            "last_name": os.getenv("RIDEACCESS_DRIVER_LAST_NAME"),
            "email": os.getenv("RIDEACCESS_DRIVER_EMAIL"),
        }
    )

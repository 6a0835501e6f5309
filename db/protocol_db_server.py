import enum
from dataclasses import dataclass
from typing import Any, Dict


JSONPayload = Dict[str, Any]


class db_response_type(enum.IntEnum):
    ERROR = 1
    RIDE_REQUESTS_FOUND = 2
    RIDE_REQUEST_EXISTS = 3
    RIDE_REQUEST_CREATED = 4
    RIDE_REQUEST_UPDATED = 5
    RIDE_REQUESTS_BACKFILLED = 6


class db_msg_status(enum.IntEnum):
    OK = 1
    INVALID_INPUT = 2
    NOT_FOUND = 3


@dataclass(frozen=True)
class DBResponse:
    type: db_response_type
    status: db_msg_status
    payload: JSONPayload


def ok_payload(output: Any) -> JSONPayload:
    return {"output": output, "error": None}


def error_payload(message: str) -> JSONPayload:
    return {"output": None, "error": message}


def error_response(
    message: str, status: db_msg_status = db_msg_status.INVALID_INPUT
) -> DBResponse:
    return DBResponse(
        type=db_response_type.ERROR,
        status=status,
        payload=error_payload(message),
    )

from dotenv import load_dotenv
import os
from pathlib import Path
import sqlite3
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent
load_dotenv(BASE_DIR / ".env")
DEFAULT_DB_PATH = (PROJECT_ROOT / "RideAccess.db").resolve()
DB_FILE_PATH: Optional[Path] = None


def _resolve_db_path(value: str) -> Path:
    raw_path = Path(value.strip()).expanduser()
    if raw_path.is_absolute():
        return raw_path.resolve()

    root_candidate = (PROJECT_ROOT / raw_path).resolve()
    if root_candidate.exists():
        return root_candidate

    base_candidate = (BASE_DIR / raw_path).resolve()
    if base_candidate.exists():
        return base_candidate

    return root_candidate


def _database_url() -> str:
    """
    Pick the sqlite URL from DB_URL, then DB_PATH, then the project default.
    Relative paths are anchored at the project root so every process shares
    the same file.
    """
    raw_url = (os.getenv("DB_URL") or "").strip()
    if raw_url:
        if raw_url.startswith("sqlite:///"):
            path_part = raw_url.replace("sqlite:///", "", 1)
            if path_part and path_part != ":memory:":
                return f"sqlite:///{_resolve_db_path(path_part)}"
        return raw_url

    raw_path = (os.getenv("DB_PATH") or "").strip()
    if raw_path:
        return f"sqlite:///{_resolve_db_path(raw_path)}"

    DEFAULT_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{DEFAULT_DB_PATH}"


def _set_db_file_path_from_connection(con: sqlite3.Connection, url: str) -> None:
    global DB_FILE_PATH
    try:
        cur = con.execute("PRAGMA database_list;")
        for _, name, file_path in cur.fetchall():
            if name == "main" and file_path:
                DB_FILE_PATH = Path(file_path).resolve()
                return
    except sqlite3.Error:
        pass

    if url.startswith("sqlite:///"):
        DB_FILE_PATH = Path(url.replace("sqlite:///", "", 1)).expanduser().resolve()
    else:
        DB_FILE_PATH = None


def sqlite3_from_db_url(url: Optional[str] = None) -> sqlite3.Connection:
    url = url or _database_url()
    if not url.startswith("sqlite"):
        raise RuntimeError("DB_URL must be a sqlite URL for sqlite3 stdlib use")
    if url.startswith("sqlite:///"):
        con = sqlite3.connect(
            url.replace("sqlite:///", "", 1),
            check_same_thread=False,
        )
    elif url.startswith("sqlite:"):
        con = sqlite3.connect(
            url.replace("sqlite:", "", 1),
            uri=True,
            check_same_thread=False,
        )
    else:
        raise RuntimeError(f"Unsupported sqlite URL: {url!r}")

    con.row_factory = sqlite3.Row
    _set_db_file_path_from_connection(con, url)
    return con


DB_CONNECTION = sqlite3_from_db_url()


def get_db_file_path() -> Optional[Path]:
    """Return the sqlite file path for the primary database if available."""
    return DB_FILE_PATH

"""Application entry point for the stationnav API.

Run locally:
    uvicorn stationnav.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import uvicorn

PACKAGE_DIR = Path(__file__).resolve().parent


def _parse_env_line(raw: str) -> tuple[str, str] | None:
    line = raw.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = (part.strip() for part in line.split("=", 1))
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def load_env_files(candidates: list[Path] | None = None) -> None:
    """Apply key=value pairs from .env files without overriding set variables.

    Defaults to the package directory file, then one in the working directory.
    Earlier files win for keys both define.
    """
    if candidates is None:
        candidates = [PACKAGE_DIR / ".env", Path(".env")]

    for env_path in candidates:
        if not env_path.exists():
            continue

        for raw in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw)
            if parsed is None:
                continue
            key, value = parsed
            os.environ.setdefault(key, value)


def _configure_logging() -> None:
    level_name = os.getenv("STATIONNAV_LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


load_env_files()
_configure_logging()

# Imported after the env files are applied: the store reads its settings at import.
from stationnav.api import create_app  # noqa: E402

app = create_app()


if __name__ == "__main__":
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    reload_enabled = os.getenv("API_RELOAD", "true").lower() == "true"
    uvicorn.run("stationnav.main:app", host=host, port=port, reload=reload_enabled)

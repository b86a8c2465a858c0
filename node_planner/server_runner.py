"""Start the planner API under uvicorn, tuned from environment variables."""

from __future__ import annotations

import argparse
import os

import uvicorn

APP_IMPORT_PATH = "node_planner.main:app"


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def build_run_options(argv: list[str] | None = None) -> dict:
    parser = argparse.ArgumentParser(description="Run the NS node planner API.")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=_env_int("PORT", 8000))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only).")
    args = parser.parse_args(argv)

    options = {
        "host": args.host,
        "port": args.port,
        "log_level": os.getenv("UVICORN_LOG_LEVEL", "info").strip() or "info",
        "timeout_keep_alive": _env_int("UVICORN_TIMEOUT_KEEP_ALIVE", 5),
    }
    if args.reload:
        options["reload"] = True
    else:
        options["workers"] = _env_int("WEB_CONCURRENCY", 1)
    return options


if __name__ == "__main__":
    uvicorn.run(APP_IMPORT_PATH, **build_run_options())

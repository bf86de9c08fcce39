"""WSGI entry point for the Gardooner backend.

``gardooner_app:app`` is the WSGI callable; ``main()`` runs the development
server and backs the ``gardooner-server`` console script.
"""
from __future__ import annotations

import logging
import os

from gardooner import create_app


def _env_flag_true(name: str) -> bool:
    v = os.getenv(name)
    return bool(v and v.lower() in ("1", "true", "yes", "on"))


app = create_app(bootstrap_runtime=_env_flag_true("GARDOONER_RUN_SCHEDULER"))


def main() -> int:
    host = os.getenv("GARDOONER_HOST", "0.0.0.0")
    port = int(os.getenv("GARDOONER_PORT", "8000"))
    debug = _env_flag_true("GARDOONER_DEBUG")

    logging.info("Starting server on %s:%s", host, port)
    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except OSError as exc:
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

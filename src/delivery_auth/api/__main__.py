"""
delivery_auth.api.__main__

Entrypoint for running the session service via `python -m delivery_auth.api`.
"""

from __future__ import annotations

import uvicorn

from delivery_auth.api.app import create_app
from delivery_auth.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    # A single worker: the monitors and session store are per-process state.
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

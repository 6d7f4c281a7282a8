"""Run the sidecar: ``python -m prom_otel`` or the ``prom-otel`` console script."""

from __future__ import annotations

import uvicorn

from prom_otel.core.config import get_settings


def main() -> None:
    """Start uvicorn with host/port from the environment (HOST, PORT)."""
    settings = get_settings()
    uvicorn.run(
        "prom_otel.api.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()

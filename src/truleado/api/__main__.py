"""
truleado.api.__main__

Run the API with `python -m truleado.api` (or the `truleado-api` script).
"""

from __future__ import annotations

import uvicorn

from truleado.api.app import create_app
from truleado.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

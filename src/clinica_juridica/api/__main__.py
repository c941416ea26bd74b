"""
clinica_juridica.api.__main__

`python -m clinica_juridica.api` (or the `clinica-api` script): serve the backend with uvicorn.
"""

from __future__ import annotations

import uvicorn

from clinica_juridica.api.app import create_app
from clinica_juridica.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        # The SPA is served behind a reverse proxy; audit rows need the real client address.
        proxy_headers=True,
        forwarded_allow_ips="*",
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

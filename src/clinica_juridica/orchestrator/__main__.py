"""
clinica_juridica.orchestrator.__main__

`python -m clinica_juridica.orchestrator` (or `clinica-orchestrator`): serve the orchestrator;
the external-task poller starts with the app lifespan.
"""

from __future__ import annotations

import uvicorn

from clinica_juridica.orchestrator.app import create_app
from clinica_juridica.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.orchestrator_host,
        port=settings.orchestrator_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

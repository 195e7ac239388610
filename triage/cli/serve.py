"""CLI: serve-api command."""

from __future__ import annotations

import uvicorn


def cmd_serve_api(host: str = "0.0.0.0", port: int = 8000, log_level: str = "info") -> None:
    uvicorn.run(
        "triage.api:app",
        host=host,
        port=port,
        reload=False,
        log_level=log_level.lower(),
    )

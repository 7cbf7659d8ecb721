from __future__ import annotations

import logging

import uvicorn

from patchrss.main import app as fastapi_app
from patchrss.settings import settings

_log = logging.getLogger("patchrss")


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _log.info("Server is running on http://localhost:%d", settings.port)
    uvicorn.run(
        fastapi_app,
        host=settings.bind_host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

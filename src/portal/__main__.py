"""Portal entrypoint.

Run with:
  python -m portal
"""

import logging
import os
import sys

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("PORTAL_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    host = os.getenv("PORTAL_HOST", "0.0.0.0")
    port = int(os.getenv("PORTAL_PORT", "8001"))
    reload = os.getenv("PORTAL_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("portal.app:create_app", factory=True, host=host, port=port, reload=reload)

if __name__ == "__main__":
    main()

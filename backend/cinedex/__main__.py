"""
Entry point: `python -m cinedex [--version]`.

Runs uvicorn in factory mode. On SIGINT/SIGTERM uvicorn stops accepting
connections and waits up to SHUTDOWN_TIMEOUT seconds for in-flight
requests before the app's lifespan shutdown runs.
"""

import argparse

import uvicorn

from cinedex import __version__
from cinedex.config import settings


def main() -> None:
    parser = argparse.ArgumentParser(prog="cinedex", description="Cinedex movie catalog API")
    parser.add_argument("--version", action="store_true", help="print the version and exit")
    args = parser.parse_args()

    if args.version:
        print(f"Version:\t{__version__}")
        return

    uvicorn.run(
        "cinedex.main:create_app",
        factory=True,
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
        # Client IPs come from X-Forwarded-For / X-Real-IP in RateLimitMiddleware
        proxy_headers=False,
    )


if __name__ == "__main__":
    main()

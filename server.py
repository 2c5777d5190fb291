import logging

import uvicorn

from cloudnav.config import get_settings


def run_uvicorn():
    """
    Run the FastAPI app via uvicorn in this process.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = uvicorn.Config(
        "cloudnav.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
    server = uvicorn.Server(config)
    print(f"[server] Serving CloudNav on http://{settings.host}:{settings.port}/ "
          f"({settings.kv_backend} KV backend)")
    server.run()


def main():
    try:
        run_uvicorn()
    except KeyboardInterrupt:
        print("\n[server] Shutting down.")


if __name__ == "__main__":
    main()

import uvicorn

from sunscore.config.logging_setup import setup_logging
from sunscore.config.settings import get_settings


def main(host: str = None, port: int = None, reload: bool = False):
    """Start the API server."""
    setup_logging()
    settings = get_settings()
    host = host or settings.sunscore_host
    port = port or settings.sunscore_port

    print(f"Starting sun score API on http://{host}:{port}")
    print("Press CTRL+C to quit.")

    uvicorn.run(
        "sunscore.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=None  # logging is already configured
    )


if __name__ == "__main__":
    main()

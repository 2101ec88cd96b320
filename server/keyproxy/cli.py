import uvicorn

from keyproxy.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "keyproxy.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,  # keep the handlers set up by create_app
    )


if __name__ == "__main__":
    main()

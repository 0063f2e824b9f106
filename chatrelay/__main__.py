"""Run the relay with uvicorn: `python -m chatrelay`."""

import uvicorn

from .main import create_app
from .settings import load_settings


def main() -> None:
    settings = load_settings()
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()

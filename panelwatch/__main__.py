from __future__ import annotations

import uvicorn

from panelwatch.config import Settings
from panelwatch.main import create_app
from panelwatch.services.container import ServiceContainer


def main() -> None:
    container = ServiceContainer(Settings.from_env())
    app = create_app(container)
    uvicorn.run(app, host=container.settings.host, port=container.settings.port, log_config=None)


if __name__ == "__main__":
    main()

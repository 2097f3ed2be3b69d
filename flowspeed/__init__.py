"""Application bootstrap helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import AppConfig, load_config
from .logging_setup import configure_logging
from .plugin import SpeedTestPlugin
from .web.app import WebHost, create_web_app


class ApplicationContext:
    """Holds shared singletons for the plugin host."""

    def __init__(self, config: AppConfig):
        self.config = config
        configure_logging(config)
        self.host = WebHost(dark_theme=config.launcher.theme.lower() == "dark")
        self.plugin = SpeedTestPlugin(config, self.host)
        self.web_app = create_web_app(config=config, plugin=self.plugin, host=self.host)

    def shutdown(self) -> None:
        self.plugin.shutdown()


def bootstrap(config_path: Optional[str] = None) -> ApplicationContext:
    """Load configuration and wire dependencies."""

    config_file = Path(config_path).resolve() if config_path else None
    config = load_config(str(config_file)) if config_file else load_config()
    return ApplicationContext(config)

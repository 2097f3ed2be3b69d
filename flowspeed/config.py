"""Configuration loading helpers for the speed test launcher plugin."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import platform
import yaml

CLI_VERSION = "1.2.0"
_DOWNLOAD_BASE = "https://install.speedtest.net/app/cli/ookla-speedtest-{version}-{target}"


def default_cli_urls(version: str = CLI_VERSION) -> Dict[str, str]:
    targets = {
        "windows_x86_64": "win64.zip",
        "linux_x86_64": "linux-x86_64.tgz",
        "linux_aarch64": "linux-aarch64.tgz",
        "linux_armhf": "linux-armhf.tgz",
        "darwin_x86_64": "macosx-universal.tgz",
        "darwin_aarch64": "macosx-universal.tgz",
    }
    return {key: _DOWNLOAD_BASE.format(version=version, target=target) for key, target in targets.items()}


@dataclass
class PathsConfig:
    bin_dir: Path
    logs_dir: Path


@dataclass
class SpeedtestCliConfig:
    version: str = CLI_VERSION
    binary_name: str = "speedtest"
    auto_download: bool = True
    download_timeout: float = 30.0
    urls: Dict[str, str] = field(default_factory=dict)
    extra_args: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        merged = default_cli_urls(self.version)
        merged.update(self.urls or {})
        self.urls = merged


@dataclass
class LauncherConfig:
    action_keyword: str = "st"
    refresh_interval_ms: int = 300
    settle_delay_ms: int = 50
    quiet_interval_seconds: float = 2.0
    theme: str = "light"


@dataclass
class WebConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file_name: str = "flowspeed.log"
    max_bytes: int = 1024 * 1024
    backup_count: int = 3
    # launchers usually run plugins without a console attached
    console: bool = False
    scheduler_level: str = "WARNING"


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    speedtest_cli: SpeedtestCliConfig
    launcher: LauncherConfig
    web: WebConfig
    logging: LoggingConfig

    @property
    def platform_key(self) -> str:
        system = platform.system().lower()
        machine = platform.machine().lower()
        # Normalize machine architecture names
        if machine in ("amd64", "x86_64"):
            machine = "x86_64"
        elif machine in ("arm64", "aarch64"):
            machine = "aarch64"
        elif machine.startswith("armv7"):
            machine = "armhf"
        return f"{system}_{machine}"


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ValueError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load plugin configuration from YAML file."""

    root_dir = Path(path).resolve().parent if path else Path.cwd()
    source_path = Path(path) if path else root_dir / "config.yaml"
    if not source_path.exists():
        raise FileNotFoundError(f"Missing configuration file at {source_path}")

    with source_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    paths_data = data.get("paths", {})
    paths = PathsConfig(
        bin_dir=_as_path(root_dir, paths_data.get("bin_dir", "cli")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
    )

    config = AppConfig(
        root_dir=root_dir,
        paths=paths,
        speedtest_cli=SpeedtestCliConfig(**data.get("speedtest_cli", {})),
        launcher=LauncherConfig(**data.get("launcher", {})),
        web=WebConfig(**data.get("web", {})),
        logging=LoggingConfig(**data.get("logging", {})),
    )

    return config

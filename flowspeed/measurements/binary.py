"""Acquisition of the Ookla Speedtest CLI binary."""

from __future__ import annotations

import logging
import os
import platform
import tarfile
import tempfile
import zipfile
from pathlib import Path

import requests

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)


class BinaryUnavailableError(RuntimeError):
    """The Speedtest CLI is missing and could not be fetched or unpacked."""


def get_speedtest_binary_path(config: AppConfig) -> Path:
    suffix = ".exe" if platform.system().lower().startswith("win") else ""
    binary_name = config.speedtest_cli.binary_name
    if suffix and not binary_name.endswith(suffix):
        binary_name = f"{binary_name}{suffix}"
    return config.paths.bin_dir / binary_name


def ensure_speedtest_binary(config: AppConfig) -> Path:
    """Return the CLI path, downloading and unpacking it on first use.

    Repeated calls see the binary already present and skip the fetch.
    Concurrent first installs from separate processes are not locked; the
    binary is moved into place atomically so the loser simply overwrites an
    identical file.
    """
    binary_path = get_speedtest_binary_path(config)
    if binary_path.exists():
        return binary_path

    if not config.speedtest_cli.auto_download:
        raise BinaryUnavailableError(
            f"Missing Speedtest CLI binary at {binary_path}. Enable auto_download or install manually."
        )

    platform_key = config.platform_key
    url = config.speedtest_cli.urls.get(platform_key)
    if not url:
        raise BinaryUnavailableError(
            f"No Speedtest CLI download URL configured for platform {platform_key}. "
            f"Supported platforms: {sorted(config.speedtest_cli.urls)}"
        )

    binary_path.parent.mkdir(parents=True, exist_ok=True)
    archive_path = binary_path.parent / ("speedtest.zip" if url.endswith(".zip") else "speedtest.tgz")
    try:
        _download_archive(url, archive_path, config.speedtest_cli.download_timeout)
        LOGGER.info("Extracting CLI...")
        _install_from_archive(archive_path, binary_path)
    except (requests.RequestException, OSError, zipfile.BadZipFile, tarfile.TarError) as exc:
        raise BinaryUnavailableError(f"Failed to install Speedtest CLI from {url}: {exc}") from exc
    finally:
        if archive_path.exists():
            archive_path.unlink()

    binary_path.chmod(0o755)
    LOGGER.info("CLI ready at %s", binary_path)
    return binary_path


def _download_archive(url: str, destination: Path, timeout: float) -> None:
    LOGGER.info("Downloading CLI from %s", url)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    destination.write_bytes(response.content)


def _install_from_archive(archive_path: Path, destination: Path) -> None:
    member_name = destination.name
    with tempfile.TemporaryDirectory(dir=destination.parent) as staging:
        staging_dir = Path(staging)
        if archive_path.suffix == ".zip":
            with zipfile.ZipFile(archive_path, "r") as archive:
                member = next((m for m in archive.namelist() if Path(m).name == member_name), None)
                if not member:
                    raise BinaryUnavailableError(f"zip archive did not contain {member_name} binary")
                extracted = Path(archive.extract(member, path=staging_dir))
        else:
            with tarfile.open(archive_path, "r:gz") as archive:
                member = next(
                    (m for m in archive.getmembers() if m.isfile() and Path(m.name).name == member_name),
                    None,
                )
                if not member:
                    raise BinaryUnavailableError(f"tarball did not contain {member_name} binary")
                source = archive.extractfile(member)
                if source is None:
                    raise BinaryUnavailableError(f"tarball entry {member.name} is not readable")
                extracted = staging_dir / member_name
                with source, extracted.open("wb") as handle:
                    handle.write(source.read())
        os.replace(extracted, destination)

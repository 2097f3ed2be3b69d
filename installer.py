"""Fetch the Speedtest CLI ahead of the first run."""

from __future__ import annotations

import argparse

from flowspeed.config import load_config
from flowspeed.logging_setup import configure_logging
from flowspeed.measurements.binary import ensure_speedtest_binary


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download the Speedtest CLI binary")
    parser.add_argument("--config", default="config.yaml", help="Path to the config file")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = load_config(args.config)
    configure_logging(config)

    binary_path = ensure_speedtest_binary(config)
    print(f"Speedtest CLI ready at {binary_path}")


if __name__ == "__main__":
    main()

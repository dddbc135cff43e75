"""
Command line entry point: enrich devices and print JSON records.

    device-enricher 192.168.1.50 --mac 00:1B:63:84:45:E6
    device-enricher 192.168.1.50=00:1B:63:84:45:E6 192.168.1.60 --config enrichment.yaml
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import EnrichmentConfig
from .enricher import DeviceEnricher

logger = logging.getLogger(__name__)


def parse_target(value: str) -> tuple[str, Optional[str]]:
    """Split an "IP" or "IP=MAC" argument."""
    ip, sep, mac = value.partition("=")
    return ip.strip(), (mac.strip() or None) if sep else None


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for device-enricher."""
    import argparse

    parser = argparse.ArgumentParser(description="Multi-protocol device enrichment")
    parser.add_argument("targets", nargs="+", help="Device IP, or IP=MAC")
    parser.add_argument("--mac", type=str, help="MAC address (single target only)")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--log-level", type=str, default=None, help="Log level")
    parser.add_argument("--concurrency", type=int, help="Max devices enriched at once")
    args = parser.parse_args(argv)

    # Load configuration
    if args.config:
        config = EnrichmentConfig.from_yaml(Path(args.config))
    else:
        config = EnrichmentConfig.from_env()

    # Override with CLI args
    if args.log_level:
        config.log_level = args.log_level
    if args.concurrency is not None:
        config.max_concurrent_devices = args.concurrency

    # Configure logging (stderr, so stdout stays valid JSON)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        return 2

    targets = [parse_target(t) for t in args.targets]
    if args.mac:
        if len(targets) != 1:
            parser.error("--mac can only be used with a single target")
        targets = [(targets[0][0], args.mac)]

    enricher = DeviceEnricher(config)
    try:
        devices = asyncio.run(enricher.enrich_many(targets))
    except ValueError as e:
        logger.error(f"Invalid target: {e}")
        return 2

    json.dump([d.to_dict() for d in devices], sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

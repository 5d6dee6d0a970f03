from __future__ import annotations

import argparse
import asyncio

import structlog

from cloudasset.core.exceptions import ConfigurationError
from cloudasset.services.runner import InventoryRunner
from cloudasset.shared.core.config import Settings, load_settings
from cloudasset.shared.core.logging import setup_logging

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cloudasset",
        description="Periodically collect cloud and Kubernetes assets and emit them as JSON lines.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config file (overrides environment settings).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Human readable DEBUG logging.",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the configuration and exit.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        setup_logging(Settings.model_construct(DEBUG=args.debug))
        logger.error("configuration_invalid", error=exc.message, code=exc.code)
        return EXIT_CONFIG_ERROR

    if args.debug:
        settings = settings.model_copy(update={"DEBUG": True})
    setup_logging(settings)

    if args.check_config:
        logger.info("configuration_valid", providers=settings.configured_providers)
        return EXIT_OK

    runner = InventoryRunner(settings)
    try:
        asyncio.run(runner.run())
    except ConfigurationError as exc:
        logger.error("configuration_invalid", error=exc.message, code=exc.code)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.info("inventory_interrupted")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())

"""
PiDAO Monitoring - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the monitoring runtime.

- Loads configuration from YAML or environment
- Configures logging
- Runs until SIGINT/SIGTERM, or performs one round and exits

============================================================
USAGE
============================================================
pidao-monitor
pidao-monitor --config monitoring.yaml --log-level DEBUG
pidao-monitor --once
pidao-monitor --benchmark network-performance

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import MonitoringConfig, set_config
from .exceptions import MonitoringError
from .service import MonitoringRuntime


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pidao-monitor",
        description="PiDAO platform monitoring runtime",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Run until interrupted
  %(prog)s --config monitoring.yaml         # Load YAML configuration
  %(prog)s --once                           # One collection + health round
  %(prog)s --benchmark contract-performance # Run one benchmark and exit
        """
    )

    # --------------------------------------------------------
    # Configuration
    # --------------------------------------------------------
    config_group = parser.add_argument_group("Configuration")

    config_group.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="YAML configuration file (default: environment variables)",
    )

    config_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="dotenv file to load before reading the environment",
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--once",
        action="store_true",
        help="Run one metrics and health round, print the result and exit",
    )

    execution_group.add_argument(
        "--benchmark",
        type=str,
        metavar="CONFIG_ID",
        help="Run a single benchmark, print the result and exit",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    return parser


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(args: argparse.Namespace) -> MonitoringConfig:
    """Build configuration from CLI arguments."""
    if args.config:
        config = MonitoringConfig.from_yaml(Path(args.config))
    else:
        config = MonitoringConfig.from_env(args.env_file)
    set_config(config)
    return config


# ============================================================
# RUN MODES
# ============================================================

async def run_once(runtime: MonitoringRuntime) -> int:
    """One collection and health round."""
    snapshot = await runtime.collector.tick()
    status = await runtime.health.tick()
    print(json.dumps(
        {"metrics": snapshot.to_dict(), "health": status.to_dict()},
        indent=2,
        default=str,
    ))
    return 0 if status.overall.value == "healthy" else 1


async def run_benchmark(runtime: MonitoringRuntime, config_id: str) -> int:
    result = await runtime.run_benchmark(config_id)
    print(result.summary)
    return 0 if result.status.value == "success" else 1


async def run_forever(runtime: MonitoringRuntime) -> int:
    """Run until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    await runtime.start()
    logger.info("Monitoring running; press Ctrl+C to stop")
    await stop_event.wait()
    logger.info("Shutdown requested")
    return 0


async def async_main(args: argparse.Namespace) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    config = load_config(args)
    runtime = MonitoringRuntime.from_config(config)

    try:
        if args.benchmark:
            return await run_benchmark(runtime, args.benchmark)
        if args.once:
            return await run_once(runtime)
        return await run_forever(runtime)
    except MonitoringError as e:
        logger.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await runtime.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(async_main(args))


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())

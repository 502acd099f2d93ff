"""hookrelay entry point.

Loads config from YAML (and env), supports --config path. Secrets from
env or Docker secret files (GITHUB_TOKEN_FILE, WEBHOOK_SECRET_FILE, ...).
"""

import argparse
import logging
import sys
from pathlib import Path

from hookrelay.config import AppConfig, load_config
from hookrelay.logging import RelayLogging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="hookrelay",
        description="hookrelay - GitHub webhook relay and comment command dispatcher",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file (default: config.yaml)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )
    return parser.parse_args(argv)


def run(config: AppConfig) -> None:
    """Configure logging and serve until interrupted."""
    relay_logging = RelayLogging(config.logging)
    relay_logging.setup()
    log = relay_logging.get_logger("hookrelay")

    if not config.webhook_secret_resolved:
        log.warning("WEBHOOK_SECRET / WEBHOOK_SECRET_FILE not set; every webhook delivery will be rejected")
    if config.is_test_mode or not config.has_valid_github_token:
        log.warning("Test mode or no valid GitHub token: commands and comments are simulated")

    log.info(
        "hookrelay started | environment=%s | trigger=%s | forward_targets=%s | comment_targets=%s | containers=%s",
        config.environment,
        config.bot.trigger,
        len(config.forwarding.targets),
        len(config.forwarding.comment_targets),
        config.executor.use_containers,
    )
    from hookrelay.server import run_server

    run_server(config)


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = parse_args(argv)

    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        # Default path missing: try config.example.yaml for dev
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            logging.getLogger("hookrelay").warning("config.yaml not found, using config.example.yaml")

    config = load_config(config_path)

    if args.check:
        print("Config OK:", config.environment, config.bot.trigger, config.github.webhook_path)
        return 0

    try:
        run(config)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logging.getLogger("hookrelay").exception("Fatal error: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import json
import sys
import time

from core.cycle_scheduler import CycleScheduler
from core.orchestrator import MarketSignalEngine
from storage.state_repository import StateRepository
from utils.config import load_config, get_config_value
from utils.logging_utils import get_component_logger, set_log_level


def main():
    """Main entry point for the application."""
    parser = argparse.ArgumentParser(description="Market Signal Engine")
    parser.add_argument("--config", type=str, default="config/config.json", help="Path to config file")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")
    parser.add_argument("--state-dir", type=str, default=None, help="Directory for persisted state")
    parser.add_argument("--interval", type=int, default=None, help="Seconds between analysis cycles")
    parser.add_argument("--once", action="store_true", help="Run a single cycle, print it and exit")

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.state_dir:
        config['storage']['state_dir'] = args.state_dir
    if args.interval:
        config['orchestrator']['interval_seconds'] = args.interval

    set_log_level(level=args.log_level or get_config_value(config, 'logging.level', 'INFO'))
    logger = get_component_logger("main")
    logger.info("Starting Market Signal Engine")

    repository = StateRepository.from_config(config)
    engine = MarketSignalEngine(config, repository=repository)
    engine.load_state()

    if args.once:
        snapshot = engine.run_cycle()
        print(json.dumps(snapshot.to_dict() if snapshot else {}, indent=2, default=str))
        return

    scheduler = CycleScheduler(engine, config['orchestrator']['interval_seconds'])
    scheduler.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    finally:
        scheduler.stop()

    logger.info("Execution completed successfully")


if __name__ == "__main__":
    main()

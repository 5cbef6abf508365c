import argparse
import logging
import sys
from azan_alarm.core.app import AlarmApp, LOG_FORMAT


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def main(argv=None):
    setup_basic_logging()

    parser = argparse.ArgumentParser(description='Azan Alarm - prayer time alarms and notifications')
    parser.add_argument('--config', default="config.yaml",
                        help='Path to config file (default: ./config.yaml, created if missing)')
    parser.add_argument('--no-api', action='store_true', help='Do not start the HTTP API')
    args = parser.parse_args(argv)

    app = AlarmApp(config_path=args.config)
    if args.no_api:
        app.config.data.setdefault("api", {})["enabled"] = False
    app.run()


if __name__ == "__main__":
    main()

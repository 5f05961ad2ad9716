"""
Entry point for the HTML to Confluence import tool.
"""

import argparse
import logging
import os
import sys

from confluence_importer.config import DEFAULT_CONFIG_FILE, ConfigError, load_config
from confluence_importer.migration_tool import HtmlImportTool
from confluence_importer.migrators.confluence_client import ConfluenceClient
from confluence_importer.utils.pre_flight_checks import PreFlightCheckError, run_confluence_pre_flight_checks

LOG_FILE = os.path.join("reports", "import", "import.log")

logger = logging.getLogger("confluence_importer")


def setup_logging(log_file: str = LOG_FILE, verbose: bool = False) -> None:
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter("[%(levelname)s] %(message)s")

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import a folder of HTML documents into a Confluence space.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="JSON config file (default: %(default)s)")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--html-root", default=None, help="Folder holding index.html and the documents")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Simulate, no network call")
    parser.add_argument("--dry-run-local", action="store_true", default=None, help="Write pages and assets to a local folder")
    parser.add_argument("--all", dest="ignore_state", action="store_true", default=None, help="Ignore the resume state and resend everything")
    parser.add_argument("--limit", type=int, default=None, help="Process only the first N pending documents")
    parser.add_argument("--log", dest="log_path", default=None, help="Write a CSV log of the run")
    parser.add_argument("--events", dest="events_path", default=None, help="Append events to a JSON Lines file")
    parser.add_argument("--publish-report", action="store_true", default=None, help="Publish report and index pages")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    """
    Main function to run the HTML to Confluence import tool.
    """
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        cfg = load_config(
            args.config,
            env_file=args.env_file,
            html_root=args.html_root,
            dry_run=args.dry_run,
            dry_run_local=args.dry_run_local,
            ignore_state=args.ignore_state,
            limit=args.limit,
            log_path=args.log_path,
            events_path=args.events_path,
            publish_report=args.publish_report,
        )
        client = None
        if cfg.network_enabled:
            client = ConfluenceClient(cfg)
            run_confluence_pre_flight_checks(client)
    except (ConfigError, PreFlightCheckError) as e:
        logger.error("%s", e)
        return 2

    tool = HtmlImportTool(cfg, client=client)
    tool.log_message("Starting HTML to Confluence import.")
    try:
        tool.run()
    except Exception:
        logger.exception("Fatal error, the import was stopped")
        return 1

    tool.log_message("Import process finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

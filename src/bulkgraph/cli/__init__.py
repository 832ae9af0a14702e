"""Command-line interface for bulkgraph CSV uploads."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from bulkgraph.api import BulkGraphAPI, BulkGraphConfig
from bulkgraph.exceptions import BulkGraphError
from bulkgraph.models import RawFile, UploadSummary


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI.

    Logs go to stderr so that NDJSON events on stdout stay parseable.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def load_config(args: argparse.Namespace) -> BulkGraphConfig:
    """Load configuration from environment variables and CLI overrides.

    Args:
        args: Command-line arguments

    Returns:
        BulkGraphConfig with flags taking precedence over the environment
    """
    # Load .env file if it exists
    load_dotenv()

    config = BulkGraphConfig()
    if getattr(args, "uri", None):
        config.neo4j_uri = args.uri
    if getattr(args, "user", None):
        config.neo4j_user = args.user
    if getattr(args, "password", None):
        config.neo4j_password = args.password
    if getattr(args, "database", None):
        config.neo4j_database = args.database
    if getattr(args, "run_log", None):
        config.run_log_path = args.run_log
    return config


def read_raw_files(paths: List[str]) -> Optional[List[RawFile]]:
    """Read CSV files from disk.

    Args:
        paths: File paths in upload order

    Returns:
        List of RawFile, or None if any path is missing
    """
    logger = logging.getLogger(__name__)
    raw_files = []
    for path_str in paths:
        path = Path(path_str)
        if not path.is_file():
            logger.error(f"File not found: {path}")
            return None
        raw_files.append(RawFile(name=path.name, content=path.read_bytes()))
    return raw_files


def run_upload(args: argparse.Namespace, relationships: bool) -> int:
    """Run an upload and print every event as one JSON line.

    Args:
        args: Command-line arguments
        relationships: Upload relationship files instead of node files

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    raw_files = read_raw_files(args.files)
    if raw_files is None:
        return 1

    config = load_config(args)
    api = BulkGraphAPI(config)
    upload = api.upload_relationships if relationships else api.upload_nodes

    last_event = None
    for event in upload(raw_files, config.connection()):
        print(json.dumps(event.to_wire()), flush=True)
        last_event = event

    if isinstance(last_event, UploadSummary):
        logger.info(last_event.message)
        return 0
    return 1


def cmd_upload_nodes(args: argparse.Namespace) -> int:
    """Upload node CSV files.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    return run_upload(args, relationships=False)


def cmd_upload_relationships(args: argparse.Namespace) -> int:
    """Upload relationship CSV files.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    return run_upload(args, relationships=True)


def cmd_check_connection(args: argparse.Namespace) -> int:
    """Check that the configured Neo4j endpoint accepts the credentials.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    config = load_config(args)
    api = BulkGraphAPI(config)
    try:
        result = api.check_connection(config.neo4j_uri, config.neo4j_user, config.neo4j_password)
    except BulkGraphError as e:
        print(json.dumps({"error": e.to_payload()}))
        logger.error(f"✗ {e}")
        return 1

    print(json.dumps(result))
    logger.info(f"✓ Connected to {config.neo4j_uri}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Show recently recorded upload runs.

    Args:
        args: Command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    config = load_config(args)
    if not config.run_log_path:
        logger.error("Run log is disabled; set RUN_LOG_PATH or pass --run-log")
        return 1

    runs = BulkGraphAPI(config).recent_runs(limit=args.limit)

    print("\n" + "=" * 60)
    print("Recent Upload Runs")
    print("=" * 60)

    if not runs:
        print("No runs recorded.")
    else:
        for run in runs:
            print(f"\n  Run:      #{run['id']} ({run['kind']})")
            print(f"  Status:   {run['status']}")
            print(f"  Started:  {run['started_at']}")
            print(f"  Files:    {', '.join(run['file_names'])}")
            print(f"  Created:  {run['total_created']} in {run['processed_files']} file(s)")
            if run.get("duration_ms") is not None:
                print(f"  Duration: {run['duration_ms']}ms")
            if run.get("error_message"):
                print(f"  Error:    {run['error_message']}")

    print("=" * 60 + "\n")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API with uvicorn.

    Args:
        args: Command-line arguments

    Returns:
        Exit code
    """
    import uvicorn

    from bulkgraph.server import create_app

    setup_logging(args.verbose)
    config = load_config(args)
    app = create_app(BulkGraphAPI(config))
    uvicorn.run(app, host=args.host or config.host, port=args.port or config.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="bulkgraph: bulk-load CSV nodes and relationships into Neo4j",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument("--uri", help="Neo4j URI (default: $NEO4J_URI)")
    parser.add_argument("--user", help="Neo4j username (default: $NEO4J_USER)")
    parser.add_argument("--password", help="Neo4j password (default: $NEO4J_PASSWORD)")
    parser.add_argument("--database", help="Neo4j database name (default: server default)")
    parser.add_argument("--run-log", help="SQLite run log path (default: $RUN_LOG_PATH)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # upload-nodes command
    parser_nodes = subparsers.add_parser(
        "upload-nodes", help="Create nodes from CSV files with a LABEL column"
    )
    parser_nodes.add_argument("files", nargs="+", help="CSV files to upload")
    parser_nodes.set_defaults(func=cmd_upload_nodes)

    # upload-relationships command
    parser_rels = subparsers.add_parser(
        "upload-relationships",
        help="Create relationships from CSV files with TYPE, FROM_LABEL, FROM_ID, TO_LABEL, TO_ID",
    )
    parser_rels.add_argument("files", nargs="+", help="CSV files to upload")
    parser_rels.set_defaults(func=cmd_upload_relationships)

    # check-connection command
    parser_check = subparsers.add_parser(
        "check-connection", help="Verify the Neo4j endpoint and credentials"
    )
    parser_check.set_defaults(func=cmd_check_connection)

    # history command
    parser_history = subparsers.add_parser("history", help="Show recent upload runs")
    parser_history.add_argument(
        "--limit", type=int, default=10, help="Number of runs to show (default: 10)"
    )
    parser_history.set_defaults(func=cmd_history)

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Run the HTTP upload API")
    parser_serve.add_argument("--host", help="Bind address (default: $BULKGRAPH_HOST or 127.0.0.1)")
    parser_serve.add_argument("--port", type=int, help="Port (default: $BULKGRAPH_PORT or 8000)")
    parser_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

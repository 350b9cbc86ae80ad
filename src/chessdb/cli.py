"""Command-line interface for chess-db."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from chessdb import __version__
from chessdb.config import get_config
from chessdb.core.engine import ChessIndex, WATCHABLE_QUERIES
from chessdb.errors import ChessDbError
from chessdb.store.event_log import EventLog

logger = logging.getLogger(__name__)

QUERY_OPERATIONS = (
    "pending-sent",
    "pending-received",
    "agreed",
    "observable",
    "finished",
    "has-player",
    "frequency",
)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else get_config().LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_ingest(args: argparse.Namespace) -> int:
    """Append JSON lines to the log."""
    source = Path(args.file)
    if not source.exists():
        print(f"Error: File not found: {source}")
        return 1

    items = []
    with source.open() as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                print(f"Error: {source}:{line_no}: {e}")
                return 1
            if not isinstance(item, dict):
                print(f"Error: {source}:{line_no}: expected a JSON object")
                return 1
            if "author" not in item:
                print(f"Error: {source}:{line_no}: missing 'author'")
                return 1
            items.append(item)

    log = EventLog(get_config().log_db_path)
    entries = log.append_batch(items)
    print(f"Appended {len(entries)} entries (log now at seq {log.last_seq()})")
    return 0


async def _run_query(index: ChessIndex, operation: str, player_id: str, game_id: str | None):
    match operation:
        case "pending-sent":
            return [i.to_dict() for i in await index.pending_challenges_sent(player_id)]
        case "pending-received":
            return [i.to_dict() for i in await index.pending_challenges_received(player_id)]
        case "agreed":
            return await index.get_games_agreed_to_play_ids(player_id)
        case "observable":
            return await index.get_observable_games(player_id)
        case "finished":
            return [game_id async for game_id in index.get_games_finished(player_id)]
        case "has-player":
            if game_id is None:
                raise ValueError("has-player needs --game")
            return await index.game_has_player(game_id, player_id)
        case "frequency":
            return await index.weighted_play_frequency_list(player_id)
    raise ValueError(f"Unknown operation: {operation}")


def cmd_query(args: argparse.Namespace) -> int:
    """Run one query and print the result as JSON."""
    index = ChessIndex.from_config()
    try:
        result = asyncio.run(_run_query(index, args.operation, args.player_id, args.game))
    except (ChessDbError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    print(json.dumps(result, indent=2))
    return 0


def cmd_games(args: argparse.Namespace) -> int:
    """List game ids, all or finished for one player."""

    async def collect() -> list[str]:
        index = ChessIndex.from_config()
        if args.finished:
            return [g async for g in index.get_games_finished(args.finished)]
        return [g async for g in index.get_all_games_in_db()]

    try:
        game_ids = asyncio.run(collect())
    except ChessDbError as e:
        print(f"Error: {e}")
        return 1

    for game_id in game_ids:
        print(game_id)
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    """Print an id-list query each time it changes."""

    async def follow() -> None:
        async with ChessIndex.from_config() as index:
            async for ids in index.watch(args.query, args.player_id):
                print(json.dumps(ids), flush=True)

    try:
        asyncio.run(follow())
    except KeyboardInterrupt:
        pass
    except ChessDbError as e:
        print(f"Error: {e}")
        return 1
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show log and index status."""
    config = get_config()
    for problem in config.validate():
        print(f"Config: {problem}")

    log = EventLog(config.log_db_path)
    index = ChessIndex.from_config(config)
    try:
        snapshot = asyncio.run(index.snapshot())
    except ChessDbError as e:
        print(f"Error: {e}")
        return 1

    print(f"Log:      {config.log_db_path} ({log.count_entries()} entries)")
    print(f"Index:    {config.INDEX_NAME} v{snapshot.schema_version} at seq {snapshot.seq}")
    print(f"Games:    {len(snapshot)}")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="chess-db",
        description="Query chess games recorded in an append-only log",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # chess-db ingest <entries.jsonl>
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Append entries from a JSONL file to the log",
    )
    ingest_parser.add_argument(
        "file",
        help="JSONL file of {author, content, key?} objects",
    )
    ingest_parser.set_defaults(func=cmd_ingest)

    # chess-db query <operation> <player_id>
    query_parser = subparsers.add_parser(
        "query",
        help="Run a query for a player",
    )
    query_parser.add_argument("operation", choices=QUERY_OPERATIONS)
    query_parser.add_argument("player_id", help="Player identifier")
    query_parser.add_argument(
        "--game",
        default=None,
        help="Game id (for has-player)",
    )
    query_parser.set_defaults(func=cmd_query)

    # chess-db games
    games_parser = subparsers.add_parser("games", help="List game ids")
    games_parser.add_argument(
        "--finished",
        metavar="PLAYER_ID",
        default=None,
        help="Only finished games of this player",
    )
    games_parser.set_defaults(func=cmd_games)

    # chess-db watch <query> <player_id>
    watch_parser = subparsers.add_parser(
        "watch",
        help="Print a query result whenever it changes",
    )
    watch_parser.add_argument("query", choices=list(WATCHABLE_QUERIES))
    watch_parser.add_argument("player_id", help="Player identifier")
    watch_parser.set_defaults(func=cmd_watch)

    # chess-db status
    status_parser = subparsers.add_parser("status", help="Show log and index status")
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    # Show help if no command
    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

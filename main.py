#!/usr/bin/env python3
"""Fable: Interactive storytelling with long-term story memory.

This CLI runs an interactive story whose narrator remembers what happened:
every turn is extracted, scored, summarized, embedded and stored, and the
most relevant memories are fed back into the next prompt.

Commands:
    play        Play the story interactively (type 'exit' to quit)
    status      Show configuration and memory statistics
    recent      Display the most recent memories
    search      Semantic search over stored memories
    templates   List the available prompt templates

Examples:
    python main.py play                           # Built-in demo story
    SCENARIO_PATH=manor.json python main.py play  # Custom scenario
    python main.py recent --count 5
    python main.py search "the study key" --character Morgan
    python main.py status

Environment:
    GEMINI_API_KEY: Required for remote models
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from config import Config
from observability.logging import setup_logging
from observability.tracing import setup_tracing

logger = logging.getLogger(__name__)


def _print_turn(result) -> None:
    """Print a turn the way the player sees it."""
    interaction = result.interaction
    if interaction.scene_description:
        print(f"\n{interaction.scene_description}\n")
    for response in interaction.character_responses:
        if response.is_displayable:
            print(response.format_line())
    if interaction.suggested_actions:
        print("\nSuggested actions:")
        for action in interaction.suggested_actions:
            print(f"  - {action}")
    print()


def _print_memory(record) -> None:
    created = datetime.fromtimestamp(record.created_at)
    header = f"#{record.id} [{created.strftime('%Y-%m-%d %H:%M:%S')}] importance={record.importance:.2f}"
    print(header)
    print(f"   Action: {record.interaction.player_action}")
    if record.summary:
        print(f"   Summary: {record.summary}")
    if record.characters_involved:
        print(f"   Characters: {', '.join(record.characters_involved)}")
    if record.locations_involved:
        print(f"   Location: {', '.join(record.locations_involved)}")
    print()


async def _play(config: Config) -> None:
    from pipeline import build_session

    session = build_session(config)
    try:
        print(f"\n=== {session.story.title} ===")
        _print_turn(await session.start())

        while True:
            try:
                action = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not action:
                continue
            if action.lower() == "exit":
                break

            try:
                _print_turn(await session.take_turn(action))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Turn failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
                print(f"The narrator falters ({type(e).__name__}). Try again.", file=sys.stderr)
    finally:
        await session.close()


def cmd_play(args: argparse.Namespace, config: Config) -> int:
    """Run the interactive story loop.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    if args.background_persistence:
        config.await_persistence = False

    try:
        asyncio.run(_play(config))
        return 0
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger.error("Story failed | error=%s type=%s", e, type(e).__name__, exc_info=True)
        return 1


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration and memory statistics."""
    from memory import create_memory_store
    from prompts.repository import TemplateRepository

    async def count() -> int:
        with create_memory_store(config) as store:
            return await store.count()

    status = {
        "config": {
            "narrator_model": config.narrator_model,
            "summary_model": config.summary_model,
            "extractor_model": config.extractor_model,
            "embedding_provider": config.embedding_provider,
            "embedding_model": config.embedding_model,
            "embedding_dim": config.embedding_dim,
            "await_persistence": config.await_persistence,
            "scenario": config.scenario_path or "(built-in)",
            "templates": TemplateRepository.from_directory(config.templates_dir).names(),
            "enable_logfire": config.enable_logfire,
        },
        "memory": {
            "backend": config.memory_backend,
            "path": str(config.db_path if config.memory_backend == "sqlite" else config.vector_db_path),
            "total_memories": asyncio.run(count()),
        },
    }

    print(json.dumps(status, indent=2))
    return 0


def cmd_recent(args: argparse.Namespace, config: Config) -> int:
    """Display the most recent memories, oldest first."""
    from memory import create_memory_store

    async def load():
        with create_memory_store(config) as store:
            return await store.recent(args.count)

    records = asyncio.run(load())
    if not records:
        print("No memories stored yet.")
        return 0

    print(f"\n=== Recent Memories (last {len(records)}) ===\n")
    for record in records:
        _print_memory(record)
    return 0


def cmd_search(args: argparse.Namespace, config: Config) -> int:
    """Semantic search over stored memories."""
    from embeddings import create_embedding_provider
    from memory import MemoryFilter, create_memory_store

    async def search():
        embedder = create_embedding_provider(config)
        with create_memory_store(config) as store:
            vector = await embedder.embed(args.query)
            memory_filter = MemoryFilter(characters=args.character or [], location=args.location)
            return await store.search(vector, args.limit, memory_filter)

    results = asyncio.run(search())
    if not results:
        print("No matching memories.")
        return 0

    print(f"\n=== Memories matching '{args.query}' ===\n")
    for record in results:
        _print_memory(record)
    return 0


def cmd_templates(args: argparse.Namespace, config: Config) -> int:
    """List prompt templates and their variables."""
    from prompts.repository import TemplateRepository

    templates = TemplateRepository.from_directory(config.templates_dir)
    if not len(templates):
        print(f"No templates found in {config.templates_dir}")
        return 0

    for name in templates.names():
        template = templates.get_template(name)
        print(f"{name} ({template.template_type})")
        print(f"   Variables: {', '.join(template.input_variables) or '-'}")
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="Fable: Interactive storytelling with long-term memory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # play command
    play_parser = subparsers.add_parser("play", help="Play the story interactively")
    play_parser.add_argument(
        "--background-persistence",
        action="store_true",
        help="Store memories in the background (turn N may miss from turn N+1's context)",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # recent command
    recent_parser = subparsers.add_parser("recent", help="Show the most recent memories")
    recent_parser.add_argument(
        "--count",
        type=int,
        default=5,
        help="Number of memories to show (default: 5)",
    )

    # search command
    search_parser = subparsers.add_parser("search", help="Search memories by meaning")
    search_parser.add_argument("query", help="Text to search for")
    search_parser.add_argument(
        "--character",
        action="append",
        help="Only memories involving this character (repeatable)",
    )
    search_parser.add_argument(
        "--location",
        help="Only memories at this location",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=5,
        help="Max results (default: 5)",
    )

    # templates command
    subparsers.add_parser("templates", help="List prompt templates")

    args = parser.parse_args()

    # Load configuration
    config = Config.load()

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that need it
    if args.command == "play":
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    if args.command == "play":
        setup_tracing(config.enable_logfire, service_name="fable", token=config.logfire_token)

    # Route to command handler
    commands = {
        "play": cmd_play,
        "status": cmd_status,
        "recent": cmd_recent,
        "search": cmd_search,
        "templates": cmd_templates,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except KeyboardInterrupt:
            return 130
        except Exception as e:
            logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())

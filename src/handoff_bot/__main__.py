"""CLI entry point for handoff-bot."""

from __future__ import annotations

import argparse
import asyncio
import sys

from handoff_bot.ai.quality import analyze_message
from handoff_bot.app import HandoffBotApp
from handoff_bot.config import AppConfig, build_default_settings, load_config
from handoff_bot.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="handoff-bot",
        description="Customer-service agent engine with human handoff",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    _add_config_args(init_parser)

    ask_parser = subparsers.add_parser("ask", help="Run a message through the agent without persisting")
    _add_config_args(ask_parser)
    ask_parser.add_argument("tenant", help="Tenant id")
    ask_parser.add_argument("message", help="Customer message")
    ask_parser.add_argument("-s", "--store", default=None, help="Store id")

    analyze_parser = subparsers.add_parser("analyze", help="Show intent, sentiment and language of a message")
    analyze_parser.add_argument("message", help="Customer message")

    args = parser.parse_args()

    match args.command:
        case "config-check":
            _check_config(args.config, args.env)
        case "init-db":
            asyncio.run(_init_db(_load(args.config, args.env)))
        case "ask":
            asyncio.run(_ask(_load(args.config, args.env), args.tenant, args.message, args.store))
        case "analyze":
            _analyze(args.message)
        case _:
            parser.print_help()


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        config = load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(config.log_level, config.log_format)
    return config


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
        defaults = build_default_settings(config)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    api_key = config.anthropic.api_key if config.anthropic else ""
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory : {config.data_dir}")
    print(f"  Storage        : {config.storage.db_path}")
    print(f"  Anthropic key  : {'set' if api_key else 'MISSING (agent replies with fallback)'}")
    print(f"  Default model  : {defaults.model}")
    print(f"  Agent enabled  : {defaults.enabled}")
    print(f"  Language/tone  : {defaults.language}/{defaults.tone}")
    print(f"  Handoff after  : {defaults.handoff_after_failures} failures (auto={defaults.auto_handoff})")
    print(f"  Silence        : {defaults.silence_on_handoff} ({defaults.silence_duration_minutes} min)")


async def _init_db(config: AppConfig) -> None:
    app = HandoffBotApp(config)
    await app.start()
    await app.stop()
    print(f"Database ready: {config.storage.db_path}")


async def _ask(config: AppConfig, tenant: str, message: str, store: str | None) -> None:
    app = HandoffBotApp(config)
    await app.start()
    try:
        result = await app.orchestrator.test_response(tenant, message, store)
    finally:
        await app.stop()

    print(result.reply)
    print()
    print(f"  Tools   : {', '.join(result.tools_used) if result.tools_used else '(none)'}")
    print(f"  Intent  : {result.intent or '-'}")
    print(f"  Handoff : {result.handoff_reason if result.should_handoff else 'no'}")
    print(f"  Time    : {result.processing_time_ms} ms")


def _analyze(message: str) -> None:
    insight = analyze_message(message)
    print(f"Intent    : {insight.intent}")
    print(f"Sentiment : {insight.sentiment}")
    print(f"Language  : {insight.language}")


if __name__ == "__main__":
    main()

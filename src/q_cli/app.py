#!/usr/bin/env python

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .backends import create_backend
from .config import ConfigManager
from .constants import APP_VERSION
from .context import (
    ContextConfig, DirectoryProvider, FileProvider, HistoryProvider, build_prompt,
)
from .engine import QueryEngine
from .errors import QError
from .logger import logger
from .models import Provider, Verbosity
from .terminal_input import TerminalInput
from .ui import UIManager

SUBCOMMANDS = ("set-key", "set-provider", "set-model", "validate-key")


def build_query_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="q",
        description="CLI tool for querying LLMs",
        epilog=f"Configuration commands: {', '.join(SUBCOMMANDS)} (see 'q <command> --help')",
    )
    parser.add_argument("prompt", nargs="?", help="The prompt to send to the LLM (read from stdin if omitted)")
    parser.add_argument("-H", "--hist", dest="history", action="store_true", help="Include shell history context")
    parser.add_argument("-D", "--here", dest="directory", action="store_true", help="Include current directory listing")
    parser.add_argument("-F", "--file", type=Path, metavar="FILE", help="Include file content")
    parser.add_argument("--no-cache", action="store_true", help="Disable response caching")
    parser.add_argument("--no-stream", action="store_true", help="Wait for the full response instead of streaming")
    parser.add_argument("--retries", type=int, metavar="N", help="Maximum attempts per query")
    parser.add_argument("--debug", action="store_true", help="Show debug information")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("-P", "--provider", help="LLM provider (openai or gemini)")
    parser.add_argument("-M", "--model", help="Model name (e.g. gemini-2.0-flash, gpt-3.5-turbo)")
    parser.add_argument("-d", "--detail", choices=[v.value for v in Verbosity], help="Response verbosity")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.set_defaults(command=None)
    return parser


def build_command_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="q", description="Configure q")
    parser.add_argument("--debug", action="store_true", help="Show debug information")
    subparsers = parser.add_subparsers(dest="command", required=True)

    set_key = subparsers.add_parser("set-key", help="Set API key for LLM service")
    set_key.add_argument("provider", help="The LLM provider (openai or gemini)")
    set_key.add_argument("key", help="The API key to set")

    set_provider = subparsers.add_parser("set-provider", help="Set default LLM provider")
    set_provider.add_argument("provider", help="The LLM provider (openai or gemini)")

    set_model = subparsers.add_parser("set-model", help="Set model for LLM provider")
    set_model.add_argument("provider", help="The LLM provider (openai or gemini)")
    set_model.add_argument("model", help="The model name to set")

    validate = subparsers.add_parser("validate-key", help="Check stored API keys against the provider")
    validate.add_argument("provider", nargs="?", help="Only validate this provider")
    return parser


def parse_args(argv: List[str]) -> argparse.Namespace:
    """Configuration subcommands and free-form prompts need different parsers"""
    if argv and argv[0] in SUBCOMMANDS:
        return build_command_parser().parse_args(argv)
    return build_query_parser().parse_args(argv)


class QApp:
    """Main application class for q"""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.ui = UIManager()
        self.config_manager: Optional[ConfigManager] = None

    def run(self, argv: List[str]) -> int:
        args = parse_args(argv)
        if args.debug:
            logger.set_console_level(logging.DEBUG)
        elif getattr(args, "verbose", False):
            logger.set_console_level(logging.INFO)

        try:
            self.config_manager = ConfigManager(self.config_path)
            self.ui = UIManager(self.config_manager.config)

            if args.command is not None:
                return self._run_command(args)

            prompt = args.prompt or TerminalInput(self.config_manager.config).read_prompt()
            if not prompt:
                raise QError("No prompt provided. Use --help for usage information.")
            return asyncio.run(self._query(args, prompt))

        except QError as e:
            logger.debug(f"Failed: {e!r}")
            self.ui.show_error(str(e))
            return 1
        except (KeyboardInterrupt, EOFError):
            self.ui.err_console.print("\n[warning]Interrupted.[/warning]")
            return 130

    def _run_command(self, args: argparse.Namespace) -> int:
        """Handle set-key / set-provider / set-model / validate-key"""
        cm = self.config_manager

        if args.command == "set-key":
            provider = Provider.parse(args.provider)
            cm.set_api_key(provider, args.key)
            self.ui.show_success(f"API key for {provider} has been set successfully")
        elif args.command == "set-provider":
            provider = Provider.parse(args.provider)
            cm.set_default_provider(provider)
            self.ui.show_success(f"Default provider has been set to {provider}")
        elif args.command == "set-model":
            provider = Provider.parse(args.provider)
            cm.set_model(provider, args.model)
            self.ui.show_success(f"Model for {provider} has been set to {args.model.strip()}")
        elif args.command == "validate-key":
            providers = [Provider.parse(args.provider)] if args.provider else cm.configured_providers()
            if not providers:
                raise QError("No API keys configured. Use 'q set-key <provider> <key>' to set one.")
            for provider in providers:
                asyncio.run(self._validate_key(provider))
                self.ui.show_success(f"API key for {provider} is valid")
        return 0

    def _require_key(self, provider: Provider) -> str:
        api_key = self.config_manager.get_api_key(provider)
        if not api_key:
            raise QError(f"{provider} API key not found. Use 'q set-key {provider} <key>' to set it.")
        return api_key

    async def _validate_key(self, provider: Provider) -> None:
        cm = self.config_manager
        backend = create_backend(
            provider,
            self._require_key(provider),
            model=cm.get_model(provider),
            base_url=cm.get_base_url(provider),
        )
        try:
            await backend.validate_key()
        finally:
            await backend.aclose()

    def _gather_context(self, args: argparse.Namespace) -> List[str]:
        context_config = ContextConfig()
        sections = []
        if args.history:
            sections.append(HistoryProvider(context_config).get_context().content)
        if args.directory:
            sections.append(DirectoryProvider(Path.cwd(), context_config).get_context().content)
        if args.file:
            sections.append(FileProvider(args.file, context_config).get_context().content)
        return sections

    async def _query(self, args: argparse.Namespace, prompt: str) -> int:
        cm = self.config_manager
        provider = Provider.parse(args.provider) if args.provider else cm.default_provider
        api_key = self._require_key(provider)
        final_prompt = build_prompt(prompt, self._gather_context(args))

        backend = create_backend(
            provider,
            api_key,
            model=args.model or cm.get_model(provider),
            settings=cm.model_settings(args.detail),
            base_url=cm.get_base_url(provider),
        )
        self.ui.show_provider(provider.value, backend.model_name())

        query_config = cm.query_config(
            max_retries=args.retries,
            stream=False if args.no_stream else None,
            use_cache=not args.no_cache,
            show_progress=not args.debug,
        )
        sink = self.ui.create_sink()
        engine = QueryEngine(backend, query_config, sink=sink)
        try:
            response = await engine.query(final_prompt)
        finally:
            await backend.aclose()

        if not sink.rendered:
            self.ui.show_response(response)
        return 0

#!/usr/bin/env python
"""
q - Main Entry Point

Sends a natural-language prompt, optionally enriched with local context, to
an LLM provider (OpenAI or Gemini) and prints the answer.

Usage:
    q "how do I list open ports?"
    q -D -H "why did my last command fail?"
    q set-key gemini <key>

Configuration:
    - ~/.config/q-cli/config.yaml: API keys, default provider, models,
      retry and cache settings

This module is split into several modules for better organization:
- app.py: Argument parsing and query orchestration
- engine.py: Cache, retry and dispatch to the backend
- backends.py / openai_backend.py / gemini_backend.py: Vendor clients
- stream.py: SSE assembly and incremental rendering
- cache.py / retry.py: Response cache and exponential backoff
- context.py: History, directory and file context
- config.py: Configuration handling
- ui.py / theme.py / terminal_input.py: User interface
- logger.py: Logging system
- constants.py: Application constants
"""

import sys

from .app import QApp


def main() -> None:
    """Main entry point for q"""
    app = QApp()

    try:
        sys.exit(app.run(sys.argv[1:]))
    except Exception as e:
        app.ui.show_error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

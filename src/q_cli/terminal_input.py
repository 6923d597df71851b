#!/usr/bin/env python

"""
Prompt input when none is given on the command line: piped stdin is read as
is, an interactive terminal gets a prompt_toolkit line editor with history.
"""

import sys
from typing import Optional, TextIO

from prompt_toolkit import prompt
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style

from .constants import PROMPT_HISTORY_FILE
from .theme import get_theme


class TerminalInput:
    def __init__(self, config: Optional[dict] = None, stdin: Optional[TextIO] = None):
        self.theme = get_theme(config)
        self.stdin = stdin or sys.stdin
        self.history_file = PROMPT_HISTORY_FILE
        self.history = None
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            self.history = FileHistory(str(self.history_file))
        except OSError:
            self.history = None

    def _build_style(self) -> Style:
        return Style.from_dict({
            "prompt": f"{self.theme['accent']} bold",
        })

    def read_prompt(self) -> str:
        """Read the prompt from a pipe, or ask for it on a terminal"""
        if not self.stdin.isatty():
            return self.stdin.read().strip()

        return prompt(
            HTML("<prompt>q &gt; </prompt>"),
            history=self.history,
            style=self._build_style(),
        ).strip()

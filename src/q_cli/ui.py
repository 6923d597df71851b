#!/usr/bin/env python

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from .stream import RenderSink
from .theme import create_console, get_theme


class ConsoleSink(RenderSink):
    """Spinner while waiting, then live Markdown as text streams in.

    A failed attempt wipes whatever partial text it showed, so a retry starts
    from a clean region and no partial answer is left looking complete.
    """

    def __init__(self, console: Console, spinner_style: str = "accent"):
        self.console = console
        self.spinner_style = spinner_style
        self.rendered = False
        self._status = None
        self._live = None
        self._parts = []

    def begin(self, message: str) -> None:
        self._stop()
        self._parts = []
        self.rendered = False
        self._status = self.console.status(f"[bold accent]{message}[/bold accent]", spinner_style=self.spinner_style)
        self._status.start()

    def write(self, text: str) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
        if self._live is None:
            self._live = Live(console=self.console, refresh_per_second=8, vertical_overflow="visible")
            self._live.start()
        self._parts.append(text)
        self._live.update(Markdown("".join(self._parts)))

    def end(self, success: bool) -> None:
        if self._live is not None and not success:
            self._live.update(Text(""))
        self._stop()
        self.rendered = success and bool(self._parts)

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
        if self._live is not None:
            self._live.stop()
            self._live = None


class UIManager:
    def __init__(self, config=None):
        self.theme = get_theme(config or {})
        self.console = create_console(config)
        self.err_console = create_console(config, stderr=True)
        # Keep raw color values handy for border_style / style params
        self._t = self.theme

    def create_sink(self) -> ConsoleSink:
        return ConsoleSink(self.console, spinner_style=self._t["accent"])

    def show_response(self, response: str):
        """Render a complete response as Markdown"""
        self.console.print(Markdown(response))

    def show_provider(self, provider: str, model: str):
        """Dimmed 'provider: x, model: y' line on stderr"""
        self.err_console.print(f"provider: {provider}, model: {model}", style="muted", highlight=False)

    def show_error(self, error_message):
        """Display error message"""
        panel = Panel(
            Text(str(error_message), style=self._t["error"]),
            title="Error",
            title_align="left",
            border_style=self._t["error"]
        )
        self.err_console.print(panel)

    def show_success(self, message):
        self.console.print(f"[success]✓ {message}[/success]")

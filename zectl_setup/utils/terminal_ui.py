#!/usr/bin/env python3
# zectl-setup/zectl_setup/utils/terminal_ui.py
"""
Terminal User Interface
Banners, section headers, key/value summaries and yes/no confirmation
prompts for the setup pipelines
"""
import sys
from typing import Callable, Dict, Iterable, Optional, TextIO

BLUE = "\033[0;34m"
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
RESET = "\033[0m"


class TerminalUI:
    """Terminal user interface for zectl-setup"""

    def __init__(
        self,
        assume_yes: bool = False,
        input_func: Callable[[str], str] = input,
        stream: Optional[TextIO] = None,
        color: Optional[bool] = None,
    ):
        """
        Args:
            assume_yes: Answer every confirmation prompt with yes
            input_func: Reads one answer line; replaced in tests
            stream: Output stream (default: stdout)
            color: Force ANSI colors on/off (default: only on a TTY)
        """
        self.assume_yes = assume_yes
        self.input_func = input_func
        self.stream = stream or sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.color else text

    def echo(self, text: str = "") -> None:
        print(text, file=self.stream)

    def display_banner(self, banner_text: str) -> None:
        """
        Display a banner with the provided text

        Args:
            banner_text: Text to display in banner
        """
        self.echo(self._paint(f"=== {banner_text} ===", BLUE))
        self.echo()

    def section(self, title: str) -> None:
        """Print a section header"""
        self.echo(self._paint(title, BLUE))

    def highlight(self, text: str, level: str = "info") -> None:
        color = {"info": BLUE, "ok": GREEN, "warn": YELLOW, "error": RED}.get(level, BLUE)
        self.echo(self._paint(text, color))

    def show_summary(self, title: str, values: Dict[str, object]) -> None:
        """
        Print a titled, indented key/value block; None values are skipped
        """
        self.echo()
        self.echo(f"{title}:")
        for key, value in values.items():
            if value is None or value == "":
                continue
            self.echo(f"  {key}: {value}")
        self.echo()

    def show_steps(self, title: str, steps: Iterable[str]) -> None:
        """Print a numbered list of follow-up steps"""
        self.echo(f"{title}:")
        for number, step in enumerate(steps, start=1):
            self.echo(f"{number}. {step}")
        self.echo()

    def prompt_confirmation(self, message: str) -> bool:
        """
        Ask user for yes/no confirmation; an empty answer means no

        Args:
            message: Confirmation message to display

        Returns:
            True if confirmed, False otherwise
        """
        if self.assume_yes:
            self.echo(f"{message} (y/N): y")
            return True
        while True:
            try:
                response = self.input_func(f"{message} (y/N): ").strip().lower()
            except EOFError:
                return False
            if response in ['y', 'yes']:
                return True
            elif response in ['', 'n', 'no']:
                return False
            self.echo("Please answer 'y' or 'n'")

"""
Operator prompts — the interactive edge of configuration resolution.

Resolution code only sees the ``Prompter`` protocol. The CLI passes a
``ClickPrompter``; ``--non-interactive`` passes a
``NonInteractivePrompter`` that turns every required prompt into a
``ValidationError``.
"""

from __future__ import annotations

import logging
from typing import Protocol

import click

from hostprov.core.errors import ValidationError

logger = logging.getLogger(__name__)


class Prompter(Protocol):
    interactive: bool

    def ask(self, label: str, default: str | None = None) -> str: ...

    def ask_secret(self, label: str, default: str | None = None) -> str: ...

    def pause(self, message: str) -> None: ...


class ClickPrompter:
    """Prompt on the controlling terminal."""

    interactive = True

    def ask(self, label: str, default: str | None = None) -> str:
        value = click.prompt(
            label,
            default=default or "",
            show_default=bool(default),
        )
        return str(value).strip()

    def ask_secret(self, label: str, default: str | None = None) -> str:
        value = click.prompt(
            label,
            default=default or "",
            show_default=False,
            hide_input=True,
        )
        return str(value)

    def pause(self, message: str) -> None:
        click.prompt(message, default="", show_default=False, prompt_suffix=" ")


class NonInteractivePrompter:
    """Stand-in used when no terminal may be consulted.

    Values with a default fall back to it; anything without one fails.
    """

    interactive = False

    def ask(self, label: str, default: str | None = None) -> str:
        if default is None:
            raise ValidationError(f"{label}: value required but prompting is disabled")
        logger.info("%s: using default %s (non-interactive)", label, default)
        return default

    def ask_secret(self, label: str, default: str | None = None) -> str:
        if default is None:
            raise ValidationError(f"{label}: value required but prompting is disabled")
        logger.info("%s: using default (non-interactive)", label)
        return default

    def pause(self, message: str) -> None:
        logger.debug("Not waiting for operator (non-interactive): %s", message)

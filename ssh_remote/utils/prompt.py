"""Terminal implementation of the interactive credential prompt."""

import asyncio
import logging

import click

logger = logging.getLogger(__name__)


class ConsolePrompt:
    """Credential prompt backed by click.

    Prompts block on the terminal, so they run in a worker thread to keep
    the event loop (and any live tunnels) responsive. Ctrl-C or EOF at a
    prompt counts as a cancel.
    """

    async def prompt_secret(self, title: str, echo: bool = False) -> str | None:
        """Ask for a secret (or echoed) value.

        Args:
            title: Prompt text
            echo: Show typed characters

        Returns:
            Entered text ("" for empty input), or None if cancelled
        """
        try:
            return await asyncio.to_thread(
                click.prompt,
                title,
                default="",
                show_default=False,
                hide_input=not echo,
                err=True,
            )
        except click.Abort:
            logger.debug("Prompt cancelled: %s", title)
            return None

    async def confirm_retry(self, message: str) -> bool:
        """Ask whether a failed connection should be retried."""
        try:
            return await asyncio.to_thread(
                click.confirm, f"{message}. Retry?", default=True, err=True
            )
        except click.Abort:
            return False

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for relay-mailer.

Sends one email through the relay described in the JSON settings file.

Usage:
    # Body from stdin
    echo "All backups completed" | relay-mailer --to ops@example.com --subject "Backups"

    # Body from a file, two attachments
    relay-mailer --to ops@example.com --body report.txt summary.csv errors.log

    # Literal body, explicit settings file
    relay-mailer --config ./config.json --to ops@example.com --body "Disk almost full"

Body selection (``--body``):
    - ``-`` (default) reads standard input
    - a value ending in ``.<letters or digits>`` is read as a file
    - anything else is sent as the literal text

Environment variables:
    RELAY_MAILER_CONFIG - Settings file (default: /etc/relay-mailer/config.json)
    RELAY_MAILER_LOG_LEVEL - Logging level (default: WARNING)
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
import sys
from contextlib import ExitStack
from typing import BinaryIO

import click
from rich.console import Console
from rich.markup import escape

from .config_loader import default_config_path, load_mailer_config
from .errors import MailerError
from .models import Email
from .session import Mailer

console = Console()
err_console = Console(stderr=True)

RE_FILENAME = re.compile(r"\.[0-9a-zA-Z]+$")
DEFAULT_SUBJECT = "relay-mailer"
LOG_LEVEL_ENV_VAR = "RELAY_MAILER_LOG_LEVEL"


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='[%(asctime)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True,
    )


def open_body(body: str, stack: ExitStack) -> BinaryIO:
    """Resolve the ``--body`` argument into a readable binary stream.

    Files opened here are registered on ``stack`` and closed with it.
    """
    if body == "-":
        console.print("Read body from stdin")
        return click.get_binary_stream("stdin")
    if RE_FILENAME.search(body):
        stream = stack.enter_context(open(body, "rb"))
        console.print(f"Read body from {escape(body)}")
        return stream
    return io.BytesIO(body.encode("utf-8"))


@click.command()
@click.version_option(package_name="relay-mailer")
@click.option(
    "--config", "config_path", default=default_config_path,
    show_default="$RELAY_MAILER_CONFIG or /etc/relay-mailer/config.json",
    help="JSON settings file with the relay and the default sender.",
)
@click.option("--to", "to", required=True, help="The recipient's email address.")
@click.option("--subject", default=DEFAULT_SUBJECT, show_default=True, help="The email subject.")
@click.option("--from", "sender", default="", help="Sender address (default: 'from' in the settings file).")
@click.option(
    "--body", default="-", show_default=True,
    help="Body: '-' for stdin, a name ending in .ext to read a file, otherwise literal text.",
)
@click.option(
    "--log-level", envvar=LOG_LEVEL_ENV_VAR, default="WARNING", show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level.",
)
@click.argument("attachments", nargs=-1, type=click.Path(dir_okay=False))
def main(
    config_path: str,
    to: str,
    subject: str,
    sender: str,
    body: str,
    log_level: str,
    attachments: tuple[str, ...],
) -> None:
    """Send one email, with optional ATTACHMENTS, through an SMTP relay."""
    configure_logging(log_level)
    try:
        with ExitStack() as stack:
            mailer = Mailer(load_mailer_config(config_path))
            email = Email(to=to, subject=subject, from_=sender, body=open_body(body, stack))

            console.print(f"Send email to {escape(to)} VIA {escape(mailer.config.smtp.server)}")
            for path in attachments:
                console.print(f"Add Attachment: {escape(path)}")
                email.attach_file(path)

            run_async(mailer.send(email))
    except (MailerError, OSError) as exc:
        print_error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Sendmail-compatible command line for the mail relay."""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from mail_relay import Email, MailRelayError, ParseError, Router, load_config
from mail_relay.client import AddressList, parse_address

console = Console(stderr=True)
logger = logging.getLogger("mail_relay")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def fatal(message: str, *args) -> None:
    logger.error(message, *args)
    sys.exit(1)


def fatal_with_email(email: Email, err: Exception) -> None:
    context = email.to_dict()
    fatal(
        "Unable to send email (from %r, to %r, msg %r): %s",
        context["from"], context["to"], context["message"], err,
    )


def apply_args(email: Email, from_addr: str, recipients: tuple) -> None:
    """Let -f and positional recipients override the message's own header."""
    if from_addr:
        try:
            email.set_from_address(from_addr)
        except ParseError as e:
            fatal("Unable to set \"from\" address %r: %s", from_addr, e)

    to_list = AddressList()
    for arg in recipients:
        try:
            to_list.append(parse_address(arg))
        except ParseError as e:
            fatal("Unable to set \"to\" address %r: %s", arg, e)
    if to_list:
        email.set_to_addresses(str(to_list))


@click.command()
@click.option("--config", "-c", default=None, help="Path to config file")
@click.option("--from", "-f", "from_addr", default="", help="From address")
@click.option("--dry-run", "-n", is_flag=True, help="Dry run; do not send an email message")
@click.option("--verbose", "-v", is_flag=True, help="Verbose mode")
@click.option("--ignore-dots", "-i", is_flag=True, help="Don't treat a line with only '.' as the end of input")
@click.option("-t", "read_recipients", is_flag=True, hidden=True, help="Accepted for sendmail compatibility")
@click.option("-o", "sendmail_options", multiple=True, hidden=True, help="Accepted for sendmail compatibility")
@click.argument("recipients", nargs=-1)
def cli(config, from_addr, dry_run, verbose, ignore_dots, read_recipients, sendmail_options, recipients):
    """Relay a message read from stdin through the first matching rule."""
    setup_logging(verbose)
    if "i" in sendmail_options:
        ignore_dots = True

    try:
        cfg = load_config(config)
        router = Router(cfg.rules)
    except MailRelayError as e:
        fatal("Invalid configuration: %s", e)

    try:
        email = Email.read_stream(click.get_binary_stream("stdin"), ignore_dots=ignore_dots)
    except ParseError as e:
        fatal("Unable to read stdin: %s", e)

    apply_args(email, from_addr, recipients)

    try:
        decision = router.deliver(email, dry_run=dry_run)
    except MailRelayError as e:
        fatal_with_email(email, e)

    if dry_run:
        console.print(f"[dim](dry-run)[/] {decision.source} → {decision.server}")
    else:
        logger.debug("Sent via %s (%s)", decision.server, decision.source)


if __name__ == "__main__":
    cli()

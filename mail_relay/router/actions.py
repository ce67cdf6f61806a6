"""Header-rewriting actions applied after a rule matches."""

import re
from dataclasses import dataclass

from ..client import Email
from ..client.header import is_field_name
from ..errors import ConfigError

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_-]+)\s*\}\}")


def _check_template(template: str) -> None:
    stripped = _PLACEHOLDER_RE.sub("", template)
    if "{{" in stripped:
        raise ConfigError(f"invalid SetHeader syntax: unterminated or invalid placeholder in {template!r}")


def render(template: str, email: Email) -> str:
    """Fill ``{{field}}`` placeholders with header values.

    Lookups see the email's current header, so an earlier action's rewrite is
    visible to later ones. BCC stays hidden, as it is on the wire.
    """
    headers = email.headers

    def lookup(match: re.Match) -> str:
        field = match.group(1)
        if field.lower() == "bcc":
            return ""
        return headers.get(field)

    return _PLACEHOLDER_RE.sub(lookup, template)


@dataclass
class SetHeader:
    """Replace a header field with a rendered template."""
    field: str
    template: str

    @classmethod
    def parse(cls, data: str) -> "SetHeader":
        field, sep, template = data.partition(":")
        if not sep:
            raise ConfigError("invalid SetHeader syntax: missing new value")
        field = field.strip()
        if not field:
            raise ConfigError("invalid SetHeader syntax: missing field name")
        if not is_field_name(field):
            raise ConfigError(f"invalid SetHeader syntax: bad field name {field!r}")
        _check_template(template)
        return cls(field=field, template=template)

    def apply(self, email: Email) -> None:
        email.set_header(self.field, render(self.template, email))


ACTIONS = {
    "SetHeader": SetHeader,
}


def parse_action(action: str):
    """Parse "<Command> <arguments>" into an action object."""
    command, sep, data = action.partition(" ")
    if not sep or not data:
        raise ConfigError("invalid action syntax")
    action_class = ACTIONS.get(command)
    if action_class is None:
        raise ConfigError(f"unknown action command: {command}")
    return action_class.parse(data)

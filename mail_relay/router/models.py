"""Router models - matchers, rules and decisions."""

import enum
import re
from dataclasses import dataclass, field
from typing import Optional

from ..client import Email
from ..errors import ConfigError, ParseError
from .actions import parse_action


class FieldKind(enum.Enum):
    """How a matcher reads its target field."""
    ADDRESS = "address"
    PLAIN = "plain"


ADDRESS_FIELDS = frozenset({"to", "from", "cc", "bcc", "reply-to"})


@dataclass
class Matcher:
    """A single field comparison.

    Matching on an address field means matching on the *address portion* of
    its first entry: "somebody@example.org" matches both
    "somebody@example.org" and "John <somebody@example.org>", and never looks
    past the first address in To/CC, which can get absurdly large. Regex
    matchers follow the same first-entry rule.
    """
    field: str = ""
    value: str = ""
    catchall: bool = False
    pattern: Optional[re.Pattern] = None
    kind: FieldKind = FieldKind.PLAIN

    @classmethod
    def parse(cls, condition: str) -> "Matcher":
        """Parse ``*`` or ``<field>[/regex]:<value>``.

        The field name is case-insensitive; the value is case-sensitive and
        taken verbatim up to the end of the string.
        """
        if condition == "*":
            return cls(catchall=True)

        name, sep, value = condition.partition(":")
        if not sep:
            raise ConfigError("match condition format must have a colon")

        name = name.strip().lower()
        pattern = None
        if name.endswith("/regex"):
            name = name[:-len("/regex")]
            try:
                pattern = re.compile(value)
            except re.error as exc:
                raise ConfigError(f"invalid match condition regex: {exc}") from exc
        if not name:
            raise ConfigError("match condition is missing a field name")

        kind = FieldKind.ADDRESS if name in ADDRESS_FIELDS else FieldKind.PLAIN
        return cls(field=name, value=value, pattern=pattern, kind=kind)

    @property
    def is_regex(self) -> bool:
        return self.pattern is not None

    def match(self, email: Email) -> bool:
        if self.catchall:
            return True

        header = email.header
        if self.kind is FieldKind.ADDRESS:
            # No valid address means nothing to match against
            try:
                addr = header.address(self.field)
            except ParseError:
                return False
            if addr is None:
                return False
            val = addr.address
        else:
            val = header.get(self.field)

        if self.pattern is not None:
            return self.pattern.search(val) is not None
        return val == self.value

    def __str__(self) -> str:
        if self.catchall:
            return "*"
        suffix = "/regex" if self.is_regex else ""
        return f"{self.field}{suffix}:{self.value}"


@dataclass
class Rule:
    """Matchers that must all hold, plus what to do with a matching email."""
    name: str = "Unnamed"
    matchers: list[Matcher] = field(default_factory=list)
    actions: list = field(default_factory=list)
    auth: object = None
    server: str = ""

    def add_matcher(self, condition: str) -> None:
        self.matchers.append(Matcher.parse(condition))

    def add_action(self, action: str) -> None:
        self.actions.append(parse_action(action))

    def match(self, email: Email) -> bool:
        """True if the rule has matchers and every one of them matches."""
        if not self.matchers:
            return False
        return all(matcher.match(email) for matcher in self.matchers)

    def apply(self, email: Email) -> None:
        """Run actions in declaration order."""
        for action in self.actions:
            action.apply(email)


@dataclass
class RoutingDecision:
    """Routing decision for an email."""
    rule: Rule
    position: int

    @property
    def auth(self):
        return self.rule.auth

    @property
    def server(self) -> str:
        return self.rule.server

    @property
    def source(self) -> str:
        """Return where the decision came from."""
        return f"Rule #{self.position + 1}: {self.rule.name}"

"""Email routing engine."""

import logging

from ..client import Email
from ..errors import ConfigError, RoutingError
from .models import Rule, RoutingDecision

logger = logging.getLogger(__name__)


class Router:
    """First-match-wins routing over an ordered rule list.

    Configuration order is precedence: rules are tried one at a time and the
    scan stops at the first match. The rule list is never mutated, so a single
    Router may be shared by concurrent evaluations.
    """

    def __init__(self, rules: list[Rule]):
        if not rules:
            raise ConfigError("no rules configured")
        self.rules = list(rules)

    def decide(self, email: Email) -> RoutingDecision:
        """Apply the first matching rule's actions and auth to the email."""
        for position, rule in enumerate(self.rules):
            if not rule.match(email):
                continue
            logger.debug("Matched rule %r (matchers: %s)", rule.name, [str(m) for m in rule.matchers])
            rule.apply(email)
            email.auth = rule.auth
            return RoutingDecision(rule=rule, position=position)

        raise RoutingError("no rules matched")

    def deliver(self, email: Email, dry_run: bool = False) -> RoutingDecision:
        """Route the email and make the single delivery attempt."""
        decision = self.decide(email)
        logger.debug(
            "Trying to send email from %r to %r, message follows\n%s",
            email.headers.get("from"),
            email.headers.get("to"),
            email.message.decode("utf-8", errors="replace"),
        )
        if dry_run:
            logger.info("Dry run requested; not sending email")
            return decision

        email.send(decision.server)
        return decision

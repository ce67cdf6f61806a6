"""Error taxonomy for the relay filter.

Every error is terminal for a single invocation; nothing in the core retries
or suppresses them.
"""


class MailRelayError(Exception):
    """Base class for all relay filter errors."""


class ParseError(MailRelayError):
    """Malformed address or message framing."""


class ConfigError(MailRelayError):
    """Invalid matcher, action, or configuration file."""


class ValidationError(MailRelayError):
    """Message is not deliverable as-is (missing From or To)."""


class RoutingError(MailRelayError):
    """No rule matched the incoming message."""


class DeliveryError(MailRelayError):
    """The mailer failed to hand off the message."""

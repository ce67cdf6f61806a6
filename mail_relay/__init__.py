"""Mail relay - Rule-based local sendmail replacement."""

__version__ = "0.1.0"

# Re-export main components for convenience
from .errors import (
    MailRelayError,
    ParseError,
    ConfigError,
    ValidationError,
    RoutingError,
    DeliveryError,
)
from .client import Email, Header, Address, AddressList, SMTPClient, SMTPAuth
from .router import Router, Rule, Matcher, RoutingDecision
from .config import load_config, Config

__all__ = [
    "MailRelayError",
    "ParseError",
    "ConfigError",
    "ValidationError",
    "RoutingError",
    "DeliveryError",
    "Email",
    "Header",
    "Address",
    "AddressList",
    "SMTPClient",
    "SMTPAuth",
    "Router",
    "Rule",
    "Matcher",
    "RoutingDecision",
    "load_config",
    "Config",
]

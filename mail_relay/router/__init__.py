"""Mail relay - Router package."""

from .actions import SetHeader, parse_action
from .engine import Router
from .models import FieldKind, Matcher, Rule, RoutingDecision

__all__ = [
    "SetHeader",
    "parse_action",
    "Router",
    "FieldKind",
    "Matcher",
    "Rule",
    "RoutingDecision",
]

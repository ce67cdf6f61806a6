"""Mail relay - Configuration package."""

from .loader import load_config
from .models import AuthConfig, Config, RuleConfig

__all__ = ["load_config", "AuthConfig", "Config", "RuleConfig"]

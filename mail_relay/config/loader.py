"""Configuration loader."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from ..errors import ConfigError
from .models import AuthConfig, Config, RuleConfig

logger = logging.getLogger(__name__)

LOCAL_CONFIG = "config.yml"
SYSTEM_CONFIG = "/etc/mail-relay.yml"


def find_config(config_path: Optional[str] = None) -> Path:
    """Pick the config file: explicit path, $MAIL_RELAY_CONFIG, ./config.yml, then /etc."""
    if config_path:
        return Path(config_path)
    env_path = os.getenv("MAIL_RELAY_CONFIG")
    if env_path:
        return Path(env_path)
    if Path(LOCAL_CONFIG).exists():
        return Path(LOCAL_CONFIG)
    return Path(SYSTEM_CONFIG)


def _string_list(rule_name: str, key: str, value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"rule {rule_name!r}: {key!r} must be a list of strings")
    return value


def _parse_auth(rule_name: str, data) -> AuthConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"rule {rule_name!r}: missing 'auth' section")

    password = data.get("password")
    password_env = data.get("password_env")
    if password is None and password_env:
        password = os.getenv(password_env)
        if password is None:
            raise ConfigError(f"rule {rule_name!r}: environment variable {password_env!r} is not set")

    missing = [key for key in ("username", "host", "server") if not data.get(key)]
    if missing:
        raise ConfigError(f"rule {rule_name!r}: auth is missing {', '.join(missing)}")

    return AuthConfig(
        username=str(data["username"]),
        password=str(password or ""),
        host=str(data["host"]),
        server=str(data["server"]),
    )


def parse_rules(data) -> list[RuleConfig]:
    """Turn loaded YAML (a rule list, or a mapping with "rules") into rule configs."""
    if isinstance(data, dict):
        data = data.get("rules")
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError("config must be a list of rules")

    rule_configs = []
    for index, rule_data in enumerate(data):
        if not isinstance(rule_data, dict):
            raise ConfigError(f"rule #{index + 1} must be a mapping")
        name = str(rule_data.get("name") or f"rule #{index + 1}")
        rule_configs.append(RuleConfig(
            name=name,
            matchers=_string_list(name, "matchers", rule_data.get("matchers")),
            actions=_string_list(name, "actions", rule_data.get("actions")),
            auth=_parse_auth(name, rule_data.get("auth")),
        ))
    return rule_configs


def build_rules(rule_configs: list[RuleConfig]) -> list:
    rules = []
    for rule_config in rule_configs:
        try:
            rules.append(rule_config.to_rule())
        except ConfigError as exc:
            raise ConfigError(f"rule {rule_config.name!r}: {exc}") from exc
    return rules


def load_config(config_path: Optional[str] = None) -> Config:
    """Load rules from YAML, with secrets from the environment."""
    load_dotenv()

    config_file = find_config(config_path)
    try:
        with open(config_file) as f:
            yaml_config = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"unable to open {str(config_file)!r}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"unable to parse yaml in {str(config_file)!r}: {exc}") from exc

    rule_configs = parse_rules(yaml_config)
    logger.debug("Loaded %d rule(s) from %s", len(rule_configs), config_file)
    return Config(
        path=str(config_file),
        rule_configs=rule_configs,
        rules=build_rules(rule_configs),
    )

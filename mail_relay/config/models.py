"""Configuration models."""

from dataclasses import dataclass, field

from ..client import SMTPAuth
from ..router import Rule


@dataclass
class AuthConfig:
    """Outbound SMTP credentials for one rule."""
    username: str
    password: str = field(repr=False)
    host: str
    server: str

    def to_auth(self) -> SMTPAuth:
        return SMTPAuth(username=self.username, password=self.password, host=self.host)


@dataclass
class RuleConfig:
    """A rule as written in the config file."""
    name: str
    matchers: list[str]
    auth: AuthConfig
    actions: list[str] = field(default_factory=list)

    def to_rule(self) -> Rule:
        rule = Rule(name=self.name, auth=self.auth.to_auth(), server=self.auth.server)
        for condition in self.matchers:
            rule.add_matcher(condition)
        for action in self.actions:
            rule.add_action(action)
        return rule


@dataclass
class Config:
    """Main configuration container."""
    path: str
    rule_configs: list[RuleConfig] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)

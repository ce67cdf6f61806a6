"""
Unit tests for the email routing engine.
"""
from unittest.mock import Mock

import pytest

from mail_relay.client import Email
from mail_relay.errors import ConfigError, RoutingError
from mail_relay.router import FieldKind, Matcher, Router, Rule, RoutingDecision, SetHeader, parse_action


def mkrule(*conditions, actions=(), **kwargs) -> Rule:
    """Build a rule from matcher and action strings."""
    rule = Rule(**kwargs)
    for condition in conditions:
        rule.add_matcher(condition)
    for action in actions:
        rule.add_action(action)
    return rule


@pytest.fixture
def test_email():
    """Email with a two-entry To list."""
    email = Email()
    email.set_header("to", "foo@example.com,Mister F. <tobias.f@example.com>")
    email.set_header("from", "somebody@example.com")
    return email


class TestMatcherParsing:
    """Tests for matcher condition strings."""

    def test_catchall(self):
        """Test the catchall condition."""
        matcher = Matcher.parse("*")

        assert matcher.catchall is True

    def test_exact(self):
        """Test an exact condition on an address field."""
        matcher = Matcher.parse("To:foo@example.com")

        assert matcher.field == "to"
        assert matcher.value == "foo@example.com"
        assert matcher.kind is FieldKind.ADDRESS
        assert matcher.is_regex is False

    def test_regex(self):
        """Test the /regex suffix."""
        matcher = Matcher.parse(r"From/REGEX:^\w*@example\.com$")

        assert matcher.field == "from"
        assert matcher.is_regex is True
        assert str(matcher) == r"from/regex:^\w*@example\.com$"

    def test_plain_field(self):
        """Test that other fields compare raw header text."""
        matcher = Matcher.parse("X-Mailer:mutt")

        assert matcher.field == "x-mailer"
        assert matcher.kind is FieldKind.PLAIN

    def test_value_keeps_colons(self):
        """Test that only the first colon splits."""
        matcher = Matcher.parse("Subject:Re: hello")

        assert matcher.field == "subject"
        assert matcher.value == "Re: hello"

    @pytest.mark.parametrize("condition", [
        "no colon",
        ":value",
        "/regex:abc",
        "Subject/regex:(unclosed",
    ])
    def test_invalid(self, condition):
        """Test invalid conditions."""
        with pytest.raises(ConfigError):
            Matcher.parse(condition)


class TestRuleMatch:
    """Tests for rule evaluation."""

    def test_catchall_matches_anything(self, test_email):
        """Test catchall against valid and empty emails."""
        catchall = mkrule("*")

        assert catchall.match(Email())
        assert catchall.match(test_email)

    def test_catchall_matches_invalid_addresses(self):
        """Test catchall against an email with no parsable addresses."""
        email = Email()
        email.set_header("from", "garbage")
        email.set_header("to", "more garbage")

        assert mkrule("*").match(email)

    def test_regex_from(self, test_email):
        """Test a From regex."""
        regex = mkrule(r"From/regex:^\w*@example\.com$")
        other = Email()
        other.set_header("from", "me@example.com")

        assert regex.match(test_email)
        assert regex.match(other)
        assert not regex.match(Email())

    def test_regex_non_word_chars(self):
        """Test that non-word characters defeat the pattern."""
        email = Email()
        email.set_header("from", "somebody+with+non+word+chars@example.com")

        assert not mkrule(r"From/regex:^\w*@example\.com$").match(email)

    def test_first_to_only(self, test_email):
        """Test that only the first To entry is compared."""
        assert mkrule("To:foo@example.com").match(test_email)
        assert not mkrule("To:tobias.f@example.com").match(test_email)

    def test_regex_first_to_only(self, test_email):
        """Test that regex matchers also only see the first entry."""
        assert not mkrule("To/regex:tobias").match(test_email)

    def test_display_name_ignored(self):
        """Test that address matching ignores display names."""
        email = Email()
        email.set_header("from", "John <somebody@example.org>")

        assert mkrule("From:somebody@example.org").match(email)
        assert not mkrule("From:John <somebody@example.org>").match(email)

    def test_reply_to_is_address_field(self):
        """Test that Reply-To compares by address."""
        email = Email()
        email.set_header("reply-to", "Lists <lists@example.org>")

        assert mkrule("Reply-To:lists@example.org").match(email)

    def test_bcc_never_matches(self):
        """Test that BCC is not visible to matchers."""
        email = Email.read(b"To: you@example.org\nBcc: secret@example.org\n\nhi")

        assert not mkrule("Bcc:secret@example.org").match(email)

    def test_unparsable_address_is_non_match(self):
        """Test that bad addresses never raise from matching."""
        email = Email()
        email.set_header("to", "garbage")

        assert not mkrule("To:garbage").match(email)

    def test_plain_field_exact(self):
        """Test case-sensitive exact comparison on plain fields."""
        email = Email()
        email.set_header("subject", "Hello")

        assert mkrule("subject:Hello").match(email)
        assert not mkrule("Subject:hello").match(email)

    def test_plain_field_regex_searches(self):
        """Test that regexes are unanchored."""
        email = Email()
        email.set_header("subject", "a very urgent thing")

        assert mkrule("Subject/regex:urgent").match(email)
        assert not mkrule("Subject/regex:^urgent").match(email)

    def test_all_matchers_must_match(self, test_email):
        """Test AND semantics."""
        assert mkrule("To:foo@example.com", "From:somebody@example.com").match(test_email)
        assert not mkrule("To:foo@example.com", "From:other@example.com").match(test_email)

    def test_no_matchers_never_matches(self, test_email):
        """Test that an empty rule is not vacuously true."""
        assert not Rule().match(test_email)
        assert not Rule().match(Email())


class TestActions:
    """Tests for header-rewriting actions."""

    def test_set_header_scenario(self, test_email):
        """Test ordered SetHeader actions with a template."""
        rule = mkrule(actions=["SetHeader cc:me@example.com", "SetHeader reply-to:--{{from}}--"])

        rule.apply(test_email)

        lines = test_email.headers.write().split(b"\r\n")
        assert lines == [
            b"Cc: me@example.com",
            b"From: somebody@example.com",
            b"Reply-To: --somebody@example.com--",
            b"To: foo@example.com,Mister F. <tobias.f@example.com>",
        ]

    def test_later_actions_see_earlier(self):
        """Test that templates read values set by earlier actions."""
        email = Email()
        rule = mkrule(actions=["SetHeader x-a:one", "SetHeader X-B:{{ X-A }}-two"])

        rule.apply(email)

        assert email.header.get("x-b") == "one-two"

    def test_missing_field_renders_empty(self):
        """Test a placeholder for an absent field."""
        email = Email()
        mkrule(actions=["SetHeader x-note:[{{subject}}]"]).apply(email)

        assert email.headers.get("x-note") == "[]"

    def test_bcc_hidden_from_templates(self):
        """Test that BCC cannot leak into another header."""
        email = Email.read(b"To: you@example.org\nBcc: secret@example.org\n\nhi")
        mkrule(actions=["SetHeader x-leak:{{bcc}}"]).apply(email)

        assert email.headers.get("x-leak") == ""

    def test_rewrite_from(self):
        """Test that rewriting From changes the derived sender."""
        email = Email.read(b"From: me@example.org\nTo: you@example.org\n\nhi")
        mkrule(actions=['SetHeader from:"Flap-E the Bun-E" <blah@example.com>']).apply(email)

        assert str(email.from_address) == '"Flap-E the Bun-E" <blah@example.com>'

    def test_parse_action(self):
        """Test parsing a SetHeader action."""
        action = parse_action("SetHeader reply-to:--{{from}}--")

        assert action == SetHeader(field="reply-to", template="--{{from}}--")

    @pytest.mark.parametrize("action", [
        "SetHeader",
        "SetHeader ",
        "Frobnicate x:y",
        "SetHeader no-colon",
        "SetHeader :value",
        "SetHeader x:{{from",
        "SetHeader x:{{not a field}}",
        "SetHeader bad name:x",
    ])
    def test_invalid_actions(self, action):
        """Test invalid action strings."""
        with pytest.raises(ConfigError):
            parse_action(action)


class TestRouter:
    """Tests for first-match-wins routing."""

    def test_first_match_wins(self, test_email):
        """Test that only the first matching rule applies."""
        never = mkrule("To:nobody@example.com", actions=["SetHeader x-rule:one"], name="first", auth="auth1")
        second = mkrule("*", actions=["SetHeader x-rule:two"], name="second", auth="auth2", server="mx:25")
        third = Mock(spec=Rule)
        third.match.return_value = True

        decision = Router([never, second, third]).decide(test_email)

        assert isinstance(decision, RoutingDecision)
        assert decision.rule is second
        assert decision.server == "mx:25"
        assert decision.source == "Rule #2: second"
        assert test_email.auth == "auth2"
        assert test_email.headers.get("x-rule") == "two"
        third.match.assert_not_called()
        third.apply.assert_not_called()

    def test_no_rule_matches(self, test_email):
        """Test that an unmatched email is a routing error."""
        router = Router([mkrule("To:nobody@example.com")])

        with pytest.raises(RoutingError):
            router.decide(test_email)
        assert test_email.auth is None

    def test_no_rules_configured(self):
        """Test that an empty rule list is rejected."""
        with pytest.raises(ConfigError):
            Router([])

    def test_deliver_sends_via_rule_server(self):
        """Test delivery through the matched rule."""
        mailer = Mock(return_value=None)
        email = Email.read(b"From: me@example.org\nTo: you@example.org\n\nhi", mailer=mailer)
        router = Router([mkrule("From:me@example.org", auth="auth", server="smtp.example.com:587")])

        router.deliver(email)

        mailer.assert_called_once()
        args = mailer.call_args[0]
        assert args[:4] == ("smtp.example.com:587", "auth", "me@example.org", ["you@example.org"])

    def test_deliver_dry_run(self):
        """Test that a dry run routes without sending."""
        mailer = Mock(return_value=None)
        email = Email.read(b"From: me@example.org\nTo: you@example.org\n\nhi", mailer=mailer)

        decision = Router([mkrule("*", name="all")]).deliver(email, dry_run=True)

        assert decision.rule.name == "all"
        mailer.assert_not_called()

    def test_deliver_no_match_never_sends(self):
        """Test that a routing failure makes no delivery attempt."""
        mailer = Mock(return_value=None)
        email = Email.read(b"From: me@example.org\nTo: you@example.org\n\nhi", mailer=mailer)

        with pytest.raises(RoutingError):
            Router([mkrule("From:other@example.org")]).deliver(email)
        mailer.assert_not_called()

    def test_actions_visible_on_wire(self):
        """Test that rewrites reach the sent message."""
        mailer = Mock(return_value=None)
        email = Email.read(b"From: me@example.org\nTo: you@example.org\n\nhi", mailer=mailer)
        rule = mkrule("*", actions=["SetHeader reply-to:{{from}}"], server="mx:25")

        Router([rule]).deliver(email)

        assert b"Reply-To: me@example.org\r\n" in mailer.call_args[0][4]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

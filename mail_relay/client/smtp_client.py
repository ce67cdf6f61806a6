"""SMTP delivery: the default mailer capability and its auth."""

import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.utils import parseaddr

from ..errors import DeliveryError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25
_LOCALHOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass
class SMTPAuth:
    """Credentials for one outbound server.

    ``host`` is the server name the credentials are meant for; they are never
    sent to any other server, nor over a plaintext link to a remote host.
    """
    username: str
    password: str = field(repr=False)
    host: str
    identity: str = ""

    def authenticate(self, smtp: smtplib.SMTP, server_name: str, tls: bool) -> None:
        if not tls and server_name not in _LOCALHOSTS:
            raise DeliveryError("smtp: refusing to send credentials over an unencrypted connection")
        if server_name != self.host:
            raise DeliveryError(f"smtp: wrong host name {server_name!r} for credentials (expected {self.host!r})")
        smtp.login(self.username, self.password)


def split_server(server: str) -> tuple[str, int]:
    """Split "host:port" (port defaults to 25; IPv6 hosts go in brackets)."""
    host, sep, port = server.rpartition(":")
    if not sep or "]" in port:
        host, port = server, ""
    host = host.strip("[]")
    if not host:
        raise DeliveryError(f"smtp: invalid server address {server!r}")
    if not port:
        return host, DEFAULT_PORT
    try:
        return host, int(port)
    except ValueError:
        raise DeliveryError(f"smtp: invalid port in server address {server!r}") from None


class SMTPClient:
    """Mailer that makes a single synchronous delivery attempt."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def send(self, server: str, auth, from_addr: str, to_addrs: list[str], message: bytes) -> None:
        """Deliver ``message`` through ``server``, upgrading to TLS when offered."""
        host, port = split_server(server)
        sender = parseaddr(from_addr)[1]
        recipients = [parseaddr(addr)[1] for addr in to_addrs]

        try:
            with smtplib.SMTP(host, port, timeout=self.timeout) as smtp:
                smtp.ehlo()
                tls = False
                if smtp.has_extn("starttls"):
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
                    tls = True
                if auth is not None:
                    if not smtp.has_extn("auth"):
                        raise DeliveryError("smtp: server doesn't support AUTH")
                    auth.authenticate(smtp, host, tls)
                refused = smtp.sendmail(sender, recipients, message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"smtp: unable to deliver via {server}: {exc}") from exc

        for addr, (code, reply) in refused.items():
            logger.warning("Recipient %s refused by %s: %s %s", addr, server, code, reply)

    __call__ = send

"""Email data model."""

import logging
import re
from typing import BinaryIO, Callable, Optional

from ..errors import ParseError, ValidationError
from .address import Address, AddressList, parse_address, parse_address_list
from .header import Header
from .smtp_client import SMTPClient

logger = logging.getLogger(__name__)

Mailer = Callable[[str, object, str, list[str], bytes], None]

ADDRESS_FIELDS = ("from", "to", "cc", "bcc")

_LINE_RE = re.compile(rb"\r\n|\r|\n")


class Email:
    """A single message on its way out.

    The backing header is the only authoritative state. From/To/CC/BCC are
    read from it, setters write into it, and the reconciled view returned by
    ``header`` is rebuilt from it whenever it changes.
    """

    def __init__(
        self,
        header: Optional[Header] = None,
        message: bytes = b"",
        auth=None,
        mailer: Optional[Mailer] = None,
    ):
        self._header = header if header is not None else Header()
        self.message = message
        self.auth = auth
        self.mailer: Mailer = mailer or SMTPClient()
        self._reconciled: Optional[Header] = None
        self._reconciled_revision = -1

    @classmethod
    def read(cls, data: bytes, ignore_dots: bool = False, mailer: Optional[Mailer] = None) -> "Email":
        """Parse raw message data the way sendmail reads stdin.

        Unless ``ignore_dots`` is set, a line holding only "." ends the
        message. Headers end at the first blank line; everything after it is
        the body, with line endings normalized to CRLF.
        """
        lines = _LINE_RE.split(data)
        if lines and lines[-1] == b"":
            lines.pop()
        if not ignore_dots and b"." in lines:
            lines = lines[:lines.index(b".")]

        try:
            boundary = lines.index(b"")
        except ValueError:
            boundary = len(lines)

        header = Header.parse(line.decode("utf-8", errors="surrogateescape") for line in lines[:boundary])
        email = cls(header=header, message=b"\r\n".join(lines[boundary + 1:]), mailer=mailer)
        for field in ADDRESS_FIELDS:
            email._addresses(field)
        return email

    @classmethod
    def read_stream(cls, fp: BinaryIO, ignore_dots: bool = False, mailer: Optional[Mailer] = None) -> "Email":
        """Read from a binary stream, stopping early at a lone "." line."""
        chunks = []
        for line in fp:
            if not ignore_dots and line.rstrip(b"\r\n") == b".":
                break
            chunks.append(line)
        return cls.read(b"".join(chunks), ignore_dots=ignore_dots, mailer=mailer)

    def _addresses(self, field: str) -> AddressList:
        try:
            return self._header.address_list(field)
        except ParseError as exc:
            raise ParseError(f'invalid "{field}" field: {exc}') from exc

    @property
    def headers(self) -> Header:
        """The live backing header."""
        return self._header

    @property
    def from_address(self) -> Optional[Address]:
        addresses = self._addresses("from")
        return addresses[0] if addresses else None

    @property
    def to(self) -> AddressList:
        return self._addresses("to")

    @property
    def cc(self) -> AddressList:
        return self._addresses("cc")

    @property
    def bcc(self) -> AddressList:
        return self._addresses("bcc")

    def set_from_address(self, value: str) -> None:
        """Replace From; the header is untouched if ``value`` does not parse."""
        parse_address(value)
        self._header.set("from", value.strip())

    def set_to_addresses(self, value: str) -> None:
        """Replace the whole To list from a comma-separated string."""
        parse_address_list(value)
        self._header.set("to", value.strip())

    def set_header(self, field: str, value: str) -> None:
        self._header.set(field, value)

    def delete_header(self, field: str) -> None:
        self._header.delete(field)

    @property
    def header(self) -> Header:
        """Reconciled, read-only view used for matching and sending.

        From/To/CC are rewritten in canonical address form and BCC is always
        removed. A value that no longer parses is carried over as-is.
        """
        if self._reconciled is None or self._reconciled_revision != self._header.revision:
            self._reconciled = self._reconcile()
            self._reconciled_revision = self._header.revision
        return self._reconciled

    def _reconcile(self) -> Header:
        header = self._header.clone()
        for field in ("from", "to", "cc", "bcc"):
            header.delete(field)

        for field in ("from", "to", "cc"):
            if field not in self._header:
                continue
            try:
                addresses = self._header.address_list(field)
            except ParseError:
                header.set(field, self._header.get(field))
                continue
            if field == "from":
                addresses = AddressList(addresses[:1])
            if addresses:
                header.set(field, str(addresses))

        return header.freeze()

    def send(self, host: str) -> None:
        """Hand the message to the mailer in a single attempt.

        The envelope uses bare addr-specs: recipients are To, then CC, then
        BCC, without de-duplication. Mailer errors are raised unchanged.
        """
        from_address = self.from_address
        to, cc, bcc = self.to, self.cc, self.bcc
        if from_address is None or not to:
            raise ValidationError("must have from and to addresses set")

        recipients = AddressList(to + cc + bcc)
        wire = self.header.write() + b"\r\n\r\n" + self.message
        logger.debug("Sending email from %s to %s via %s", from_address, recipients, host)
        self.mailer(host, self.auth, from_address.address, recipients.addresses(), wire)

    def to_dict(self) -> dict:
        """Raw field values, for logging context."""
        return {
            "from": self._header.get("from"),
            "to": self._header.get("to"),
            "subject": self._header.get("subject"),
            "message": self.message.decode("utf-8", errors="replace"),
        }

    def __repr__(self) -> str:
        return f"Email(header={self._header!r}, message={self.message!r})"

"""Address and address-list parsing."""

from dataclasses import dataclass
from email import errors as email_errors
from email.charset import Charset
from email.headerregistry import HeaderRegistry

from ..errors import ParseError

_registry = HeaderRegistry()


@dataclass(frozen=True)
class Address:
    """A single mailbox: optional display name plus addr-spec."""
    address: str
    name: str = ""

    def __str__(self) -> str:
        if self.name and not self.name.isascii():
            # RFC 2047 encoded-word keeps the header 7-bit clean
            return f"{Charset('utf-8').header_encode(self.name)} <{self.address}>"
        if self.name:
            escaped = self.name.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}" <{self.address}>'
        return f"<{self.address}>"


class AddressList(list):
    """Ordered list of addresses that round-trips to a parseable string."""

    def __str__(self) -> str:
        return ",".join(self.strings())

    def strings(self) -> list[str]:
        """One string per address, suitable for an SMTP recipient list."""
        return [str(addr) for addr in self]

    def addresses(self) -> list[str]:
        """Bare addr-specs, without display names."""
        return [addr.address for addr in self]


def parse_address_list(value: str) -> AddressList:
    """Parse an RFC 5322 address list.

    Fails as a whole if any entry is malformed; a partial list is never
    returned. A blank value is an error; an empty group such as
    "undisclosed-recipients:;" is a valid, empty list.
    """
    if not value or not value.strip():
        raise ParseError("mail: no address")

    try:
        header = _registry("to", value)
    except (email_errors.HeaderParseError, IndexError, ValueError) as exc:
        raise ParseError(f"mail: invalid address list {value!r}: {exc}") from exc

    for defect in header.defects:
        if isinstance(defect, email_errors.InvalidHeaderDefect):
            raise ParseError(f"mail: invalid address list {value!r}: {defect}")

    result = AddressList()
    for addr in header.addresses:
        if not addr.username or not addr.domain:
            raise ParseError(f"mail: missing @ or domain in address {value!r}")
        result.append(Address(address=addr.addr_spec, name=addr.display_name))

    return result


def parse_address(value: str) -> Address:
    """Parse exactly one address."""
    addresses = parse_address_list(value)
    if len(addresses) != 1:
        raise ParseError(f"mail: expected single address, got {len(addresses)} in {value!r}")
    return addresses[0]

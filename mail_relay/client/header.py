"""Case-insensitive message header with first-value semantics."""

import re
from typing import Iterable, Iterator, Optional

from ..errors import ParseError
from .address import Address, AddressList, parse_address_list

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def is_field_name(field: str) -> bool:
    """True if ``field`` is a valid header field name (an RFC 7230 token)."""
    return bool(_TOKEN_RE.match(field))


def canonical_key(field: str) -> str:
    """Return the MIME canonical form of a header name ("reply-to" -> "Reply-To").

    Names containing characters outside the header token set are lower-cased,
    so lookups on them stay case-insensitive.
    """
    if not is_field_name(field):
        return field.lower()
    return "-".join(part[:1].upper() + part[1:].lower() for part in field.split("-"))


class Header:
    """Header fields in wire order of arrival.

    Multiple occurrences of a field are kept, but only the first value is
    ever read or written back out; RFC 5322 gives repeated fields no defined
    meaning.
    """

    def __init__(self, fields: Optional[dict[str, list[str]]] = None, read_only: bool = False):
        self._fields: dict[str, list[str]] = {}
        for key, values in (fields or {}).items():
            if values:
                self._fields.setdefault(canonical_key(key), []).extend(values)
        self._read_only = read_only
        self.revision = 0

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "Header":
        """Build a header from raw lines, unfolding continuation lines."""
        header = cls()
        key: Optional[str] = None
        value = ""
        for line in lines:
            if line[:1] in (" ", "\t"):
                if key is None:
                    raise ParseError(f"mail: malformed header: leading continuation line {line!r}")
                value = f"{value} {line.strip()}" if value else line.strip()
                continue
            if key is not None:
                header.add(key, value)
            name, sep, rest = line.partition(":")
            if not sep or not name or name != name.strip() or " " in name or "\t" in name:
                raise ParseError(f"mail: malformed header line {line!r}")
            key, value = name, rest.strip()
        if key is not None:
            header.add(key, value)
        return header

    def _check_writable(self) -> None:
        if self._read_only:
            raise TypeError("header is read-only")

    def get(self, field: str) -> str:
        """First value of the field, or an empty string."""
        values = self._fields.get(canonical_key(field))
        return values[0] if values else ""

    def values(self, field: str) -> list[str]:
        return list(self._fields.get(canonical_key(field), []))

    def add(self, field: str, value: str) -> None:
        self._check_writable()
        self._fields.setdefault(canonical_key(field), []).append(value)
        self.revision += 1

    def set(self, field: str, value: str) -> None:
        """Replace every value of the field with the single value given."""
        self._check_writable()
        self._fields[canonical_key(field)] = [value]
        self.revision += 1

    def delete(self, field: str) -> None:
        self._check_writable()
        if self._fields.pop(canonical_key(field), None) is not None:
            self.revision += 1

    def address(self, field: str) -> Optional[Address]:
        """First address in the field.

        Returns None when the field is absent. Suitable for "From", or for the
        first (hopefully most important) entry of "To".
        """
        addresses = self.address_list(field)
        return addresses[0] if addresses else None

    def address_list(self, field: str) -> AddressList:
        """Parse the field as an address list.

        An absent field, or one whose value is blank, is an empty list.
        """
        key = canonical_key(field)
        if key not in self._fields or not self._fields[key][0].strip():
            return AddressList()
        return parse_address_list(self._fields[key][0])

    def write(self) -> bytes:
        """Serialize in wire format.

        Fields are sorted by name, each written once with its first value.
        BCC is never written: outgoing messages must not carry it.
        """
        lines = [
            f"{key}: {values[0]}"
            for key, values in sorted(self._fields.items())
            if key.lower() != "bcc"
        ]
        return "\r\n".join(lines).encode("utf-8", errors="surrogateescape")

    def clone(self) -> "Header":
        """Deep copy of all fields; the copy is always writable."""
        return Header({key: list(values) for key, values in self._fields.items()})

    def freeze(self) -> "Header":
        self._read_only = True
        return self

    @property
    def read_only(self) -> bool:
        return self._read_only

    def __contains__(self, field: object) -> bool:
        return isinstance(field, str) and canonical_key(field) in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._fields))

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Header({self._fields!r})"

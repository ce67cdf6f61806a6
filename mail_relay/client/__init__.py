"""Mail relay - Email client package."""

from .address import Address, AddressList, parse_address, parse_address_list
from .header import Header
from .models import Email
from .smtp_client import SMTPAuth, SMTPClient

__all__ = [
    "Address",
    "AddressList",
    "parse_address",
    "parse_address_list",
    "Header",
    "Email",
    "SMTPAuth",
    "SMTPClient",
]

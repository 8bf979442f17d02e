"""
Recipient normalization for send endpoints.
Accepts a list, a JSON-encoded list, or a comma/semicolon separated string; returns ordered unique addresses.
"""
import json
import re

_SEPARATORS = re.compile(r"[;,]")


class RecipientError(ValueError):
    """Recipient field could not be parsed."""


def normalize_recipients(value: str | list | None, field: str = "to") -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError as e:
                raise RecipientError(f"Malformed '{field}' recipient list") from e
        else:
            value = _SEPARATORS.split(text)
    if not isinstance(value, list):
        raise RecipientError(f"'{field}' must be a list of email addresses")

    addresses: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise RecipientError(f"'{field}' must contain only strings")
        address = item.strip()
        if not address:
            continue
        if "@" not in address:
            raise RecipientError(f"Invalid email address in '{field}': {address}")
        if address not in addresses:
            addresses.append(address)
    return addresses


def to_graph_recipients(addresses: list[str]) -> list[dict]:
    return [{"emailAddress": {"address": address}} for address in addresses]

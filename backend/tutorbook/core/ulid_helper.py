"""ULID identifiers: sortable by creation time, 26 Crockford base32 characters."""

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())

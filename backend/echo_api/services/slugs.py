"""Short public slugs for shared snapshots (e.g. "x7k9-p2")."""

import re
import secrets

SLUG_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
SLUG_PATTERN = re.compile(r"^[a-z0-9]{4}-[a-z0-9]{2}$")


def generate_slug() -> str:
    """Return a random slug: four base-36 characters, a hyphen, two more."""
    head = "".join(secrets.choice(SLUG_ALPHABET) for _ in range(4))
    tail = "".join(secrets.choice(SLUG_ALPHABET) for _ in range(2))
    return f"{head}-{tail}"


def is_valid_slug(value: str) -> bool:
    return bool(SLUG_PATTERN.match(value))

"""
Pickup PIN minting.

The PIN is a 4-digit, zero-padded string shown to the rider and read out to
the driver at pickup. It is scoped to a single ride, so collisions between
open rides are harmless and are not checked.
"""

import re
import secrets

PIN_LENGTH = 4
_PIN_SPACE = 10 ** PIN_LENGTH
_PIN_RE = re.compile(r"[0-9]{%d}" % PIN_LENGTH)


def generate_pin() -> str:
    """Return a uniformly random PIN in 0000-9999."""
    return str(secrets.randbelow(_PIN_SPACE)).zfill(PIN_LENGTH)


def is_well_formed_pin(value) -> bool:
    """True if value is exactly four ASCII digits."""
    return isinstance(value, str) and _PIN_RE.fullmatch(value) is not None

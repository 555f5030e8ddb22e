"""
Scan token issuer and decoder.

Formats:
    <ns>:checkin:<event_id>:<user_id>
    <ns>:checkin:<event_id>:companion:<companion_id>

Tokens are a pure function of (event, principal): re-issuing for the same
principal always yields the same string. Identifiers are random UUIDs, which is
what keeps the codes hard to guess.
"""

import uuid
from dataclasses import dataclass
from enum import Enum

CHECKIN_MARKER = "checkin"
COMPANION_MARKER = "companion"


class PrincipalKind(str, Enum):
    USER = "user"
    COMPANION = "companion"


class InvalidToken(ValueError):
    pass


@dataclass(frozen=True)
class ScanToken:
    event_id: uuid.UUID
    kind: PrincipalKind
    principal_id: uuid.UUID

    @property
    def is_companion(self) -> bool:
        return self.kind is PrincipalKind.COMPANION


def issue_user_token(namespace: str, event_id: uuid.UUID, user_id: uuid.UUID) -> str:
    return f"{namespace}:{CHECKIN_MARKER}:{event_id}:{user_id}"


def issue_companion_token(namespace: str, event_id: uuid.UUID, companion_id: uuid.UUID) -> str:
    return f"{namespace}:{CHECKIN_MARKER}:{event_id}:{COMPANION_MARKER}:{companion_id}"


def decode_token(namespace: str, raw: str) -> ScanToken:
    """Parse a scanned string, raising InvalidToken on any malformation."""
    parts = (raw or "").strip().split(":")
    if len(parts) not in (4, 5) or parts[0] != namespace or parts[1] != CHECKIN_MARKER:
        raise InvalidToken("Invalid QR code")

    if len(parts) == 5:
        if parts[3] != COMPANION_MARKER:
            raise InvalidToken("Invalid QR code")
        kind, principal = PrincipalKind.COMPANION, parts[4]
    else:
        kind, principal = PrincipalKind.USER, parts[3]

    try:
        return ScanToken(
            event_id=uuid.UUID(parts[2]),
            kind=kind,
            principal_id=uuid.UUID(principal),
        )
    except ValueError:
        raise InvalidToken("Invalid QR code") from None

"""
Pairing-code identity store.

A client is an opaque UUID plus a short code a person can type on a phone.
This module is the only place clients are created.

- Codes are 6 characters from an alphabet without look-alikes (0/O, 1/I).
- Codes are stored upper-case and matched case-insensitively.
- Collisions are retried a bounded number of times; running out is an
  infrastructure failure, never a caller error.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from models import Client

logger = logging.getLogger(__name__)

PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 6

T = TypeVar("T")


class PairingCodeExhaustedError(RuntimeError):
    """No unused pairing code was found within the attempt budget."""

    def __init__(self, attempts: int):
        super().__init__(f"Failed to generate unique pairing code after {attempts} attempts")
        self.attempts = attempts


class UnknownPairingCodeError(LookupError):
    """No client is registered under the given pairing code."""


def generate_pairing_code() -> str:
    return "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(PAIRING_CODE_LENGTH))


def normalize_pairing_code(code: str) -> str:
    return (code or "").strip().upper()


def retry_bounded(attempt: Callable[[], Optional[T]], max_attempts: int) -> T:
    """
    Call `attempt` until it returns a value, at most `max_attempts` times.

    `attempt` signals "try again" by returning None.

    Raises:
        PairingCodeExhaustedError: every attempt returned None
    """
    for _ in range(max_attempts):
        result = attempt()
        if result is not None:
            return result
    raise PairingCodeExhaustedError(max_attempts)


def _pairing_code_in_use(db: Session, code: str) -> bool:
    return (
        db.query(Client.id)
        .filter(func.upper(Client.pairing_code) == normalize_pairing_code(code))
        .first()
        is not None
    )


def create_client(
    db: Session,
    label: Optional[str] = None,
    *,
    code_factory: Callable[[], str] = generate_pairing_code,
    max_attempts: Optional[int] = None,
) -> Tuple[UUID, str]:
    """
    Create a client and return (client_id, pairing_code).

    Commits on success. A unique-constraint race at commit time counts as a
    collision and consumes one attempt.
    """
    attempts = max_attempts or settings.PAIRING_CODE_MAX_ATTEMPTS
    label = (label or "").strip() or None

    def _attempt() -> Optional[Client]:
        code = normalize_pairing_code(code_factory())
        if _pairing_code_in_use(db, code):
            logger.info(f"Pairing code collision on {code}, regenerating")
            return None
        client = Client(pairing_code=code, label=label)
        db.add(client)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Pairing code {code} taken concurrently, regenerating")
            return None
        return client

    client = retry_bounded(_attempt, attempts)
    logger.info(
        f"Created client_id={client.id}, pairing_code={client.pairing_code}, label={label or 'none'}",
        extra={"extra_fields": {"client_id": str(client.id)}},
    )
    return client.id, client.pairing_code


def resolve_pairing_code(db: Session, code: str) -> UUID:
    """
    Exchange a pairing code for its client id.

    Raises:
        UnknownPairingCodeError: no client has this code
    """
    normalized = normalize_pairing_code(code)
    row = (
        db.query(Client.id)
        .filter(func.upper(Client.pairing_code) == normalized)
        .first()
    )
    if row is None:
        raise UnknownPairingCodeError(normalized)
    return row.id


def client_exists(db: Session, client_id: UUID) -> bool:
    return db.query(Client.id).filter(Client.id == client_id).first() is not None

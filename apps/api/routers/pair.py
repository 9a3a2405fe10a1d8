"""
Pairing API Router

A phone exchanges the short code shown on the dashboard for its client_id.
No accounts, no tokens: the client_id is the identity from then on.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from core.database import get_db
from core.exceptions import BadRequestError, InvalidPairingCodeError
from schemas import PairRequest, PairResponse
from services.pairing_codes import UnknownPairingCodeError, resolve_pairing_code

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pairing"])


@router.post("/pair", response_model=PairResponse)
def pair(body: PairRequest, db: Session = Depends(get_db)):
    """Exchange a pairing code (case-insensitive) for a client_id."""
    if not body.pairing_code or not body.pairing_code.strip():
        raise BadRequestError("pairing_code is required", error_code="PAIRING_CODE_REQUIRED")

    try:
        client_id = resolve_pairing_code(db, body.pairing_code)
    except UnknownPairingCodeError:
        logger.info(f"Invalid pairing code attempted: {body.pairing_code}")
        raise InvalidPairingCodeError()

    logger.info(f"Successful pairing: code={body.pairing_code}, client_id={client_id}")
    return PairResponse(client_id=client_id)

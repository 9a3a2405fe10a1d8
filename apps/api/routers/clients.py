"""
Clients API Router

Operator endpoints: mint a client + pairing code, list clients with
per-client ingestion stats.
"""
from fastapi import APIRouter, Depends, Body
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from core.database import get_db
from core.exceptions import NotFoundError, ServiceUnavailableError
from schemas import ClientCreate, ClientCreatedResponse, ClientSummaryResponse
from services.owner_reads import get_client_summary, list_client_summaries
from services.pairing_codes import PairingCodeExhaustedError, create_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientCreatedResponse, status_code=201)
def create_client_endpoint(
    body: Optional[ClientCreate] = Body(default=None),
    db: Session = Depends(get_db),
):
    """Create a client and its pairing code."""
    label = body.label if body else None
    try:
        client_id, pairing_code = create_client(db, label)
    except PairingCodeExhaustedError as e:
        logger.error(str(e))
        raise ServiceUnavailableError(str(e), error_code="PAIRING_CODE_EXHAUSTED")

    return ClientCreatedResponse(
        client_id=client_id,
        pairing_code=pairing_code,
        label=(label or "").strip() or None,
    )


@router.get("", response_model=List[ClientSummaryResponse])
def list_clients(db: Session = Depends(get_db)):
    """All clients, newest first, each with its own workout/warning counts."""
    return list_client_summaries(db)


@router.get("/{client_id}", response_model=ClientSummaryResponse)
def get_client_endpoint(client_id: str, db: Session = Depends(get_db)):
    try:
        parsed = UUID(client_id)
    except ValueError:
        raise NotFoundError("Client", client_id)

    summary = get_client_summary(db, parsed)
    if summary is None:
        raise NotFoundError("Client", client_id)
    return summary

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import get_current_user
from ..schemas.quotes import QuoteCreate, QuoteCreateResponse, QuoteResponse, QuoteStatusUpdate
from ..services import quotes as quote_service
from ..services.mailer import Mailer, get_mailer
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.post("", response_model=QuoteCreateResponse)
def create_quote(
    payload: QuoteCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    mailer: Optional[Mailer] = Depends(get_mailer),
    storage: StorageProvider = Depends(get_storage),
):
    result = quote_service.create_quote(db, user, payload, mailer, storage)
    return QuoteCreateResponse(
        quote=QuoteResponse.model_validate(result.quote),
        email_sent=result.email_sent,
        send_error=result.send_error,
    )


@router.patch("/{quote_id}/ack")
def toggle_ack(quote_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quote = quote_service.toggle_quote_ack(db, user, quote_id)
    return {"quote": QuoteResponse.model_validate(quote)}


@router.patch("/{quote_id}/status")
def update_status(
    quote_id: int,
    payload: QuoteStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    quote = quote_service.set_quote_status(db, user, quote_id, payload.status)
    return {"quote": QuoteResponse.model_validate(quote)}

"""
Quote lifecycle: creation and pricing, sending with a signed-link email,
operator status changes, and the public accept / sign flow.

Statuses: En attente -> Envoyé -> Accepté | Refusé. The operator endpoint can
set any status; the public token endpoints only ever move a quote to Accepté.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union

import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import Settings, settings as default_settings
from ..models.models import (
    Client,
    Material,
    Quote,
    Service,
    User,
    QUOTE_ACCEPTED,
    QUOTE_PENDING,
    QUOTE_SENT,
    QUOTE_STATUSES,
)
from ..proposals.pdf_quote import build_quote_pdf
from ..schemas.quotes import MaterialLine, QuoteCreate
from ..storage.provider import StorageProvider
from .account import ensure_settings
from .duration import parse_hours
from .line_items import LineItem, build_line_items
from .mailer import Attachment, Mailer
from .notifications import today_local
from .pricing import QuoteTotals, compute_quote_amount, compute_totals


logger = structlog.get_logger(__name__)

INVALID_DURATION = "Durée invalide (ex: 1,30 / 1h30 / 45min)."


@dataclass(frozen=True)
class NamedMaterial:
    material_id: int


@dataclass(frozen=True)
class AdHocMaterials:
    total: float


MaterialRef = Union[NamedMaterial, AdHocMaterials]


@dataclass
class CreateQuoteResult:
    quote: Quote
    email_sent: bool
    send_error: Optional[str] = None


@dataclass
class SignResult:
    ok: bool
    already_signed: bool = False


def quote_reference(quote_id: int) -> str:
    return f"DV-{quote_id:05d}"


def company_identity(cfg: Settings) -> dict:
    return {
        "name": cfg.company_name,
        "address": cfg.company_address,
        "phone": cfg.company_phone,
        "email": cfg.company_email,
    }


def client_identity(client: Client) -> dict:
    return {"name": client.name, "address": client.address, "phone": client.phone, "email": client.email}


def resolve_hours(value) -> float:
    hours = parse_hours(value) if isinstance(value, str) else float(value or 0)
    if not hours or hours <= 0:
        raise HTTPException(status_code=400, detail=INVALID_DURATION)
    return hours


def resolve_materials(db: Session, user_id: int, payload: QuoteCreate) -> Tuple[MaterialRef, float]:
    """
    Work out which materials a quote carries and their total.

    An explicit total wins, then the sum of the named lines, then the catalog
    material price.
    """
    material: Optional[Material] = None
    if payload.material_id is not None:
        material = db.query(Material).filter(Material.id == payload.material_id, Material.user_id == user_id).first()
        if not material:
            raise HTTPException(status_code=400, detail="Matériau introuvable.")

    if payload.materials_total is not None:
        total = float(payload.materials_total)
    elif payload.materials:
        total = sum(float(m.price or 0) for m in payload.materials)
    elif material is not None:
        total = float(material.price or 0)
    else:
        total = 0.0

    if material is not None:
        return NamedMaterial(material.id), total
    return AdHocMaterials(total), total


def describe_materials(materials: Optional[Sequence[MaterialLine]]) -> Optional[str]:
    if not materials:
        return None
    return ", ".join(f"{m.name or 'Matériau'} ({float(m.price or 0):g}€)" for m in materials)


def _get_owned(db: Session, model, obj_id: int, user_id: int):
    return db.query(model).filter(model.id == obj_id, model.user_id == user_id).first()


def create_quote(
    db: Session,
    user: User,
    payload: QuoteCreate,
    mailer: Optional[Mailer],
    storage: StorageProvider,
    cfg: Settings = default_settings,
) -> CreateQuoteResult:
    client = _get_owned(db, Client, payload.client_id, user.id)
    if not client:
        raise HTTPException(status_code=400, detail="Client introuvable.")
    service = _get_owned(db, Service, payload.service_id, user.id)
    if not service:
        raise HTTPException(status_code=400, detail="Service introuvable.")
    hours = resolve_hours(payload.hours)
    material_ref, materials_total = resolve_materials(db, user.id, payload)

    account = ensure_settings(db, user.id)
    discount = float(payload.discount or 0)
    amount = compute_quote_amount(service.base_price, materials_total, hours, account.labor_rate, discount)

    quote = Quote(
        user_id=user.id,
        client_id=client.id,
        service_id=service.id,
        material_id=material_ref.material_id if isinstance(material_ref, NamedMaterial) else None,
        hours=hours,
        discount=discount,
        amount=amount,
        status=QUOTE_SENT if payload.send_email else QUOTE_PENDING,
        sent_at=today_local(cfg.tz_default),
        ack=False,
        materials_desc=describe_materials(payload.materials),
        materials_total=materials_total,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)
    logger.info("quote_created", quote_id=quote.id, amount=amount, send_requested=payload.send_email)

    if not payload.send_email:
        return CreateQuoteResult(quote=quote, email_sent=False)

    email_sent, send_error = send_quote(
        db, quote, client, service, account.labor_rate, payload.materials, mailer, storage, cfg
    )
    if send_error:
        # A failed send leaves the quote as a draft
        quote.status = QUOTE_PENDING
        db.commit()
        db.refresh(quote)
    return CreateQuoteResult(quote=quote, email_sent=email_sent, send_error=send_error)


def quote_document(
    quote: Quote,
    service: Service,
    labor_rate: float,
    materials: Optional[Sequence[MaterialLine]] = None,
) -> Tuple[List[LineItem], QuoteTotals]:
    items = build_line_items(
        service.name,
        service.base_price,
        quote.hours,
        labor_rate,
        materials=materials,
        materials_total=float(quote.materials_total or 0),
    )
    totals = compute_totals(items, quote.discount, quote.sent_at)
    return items, totals


def send_quote(
    db: Session,
    quote: Quote,
    client: Client,
    service: Service,
    labor_rate: float,
    materials: Optional[Sequence[MaterialLine]],
    mailer: Optional[Mailer],
    storage: StorageProvider,
    cfg: Settings = default_settings,
) -> Tuple[bool, Optional[str]]:
    """
    Render, store and email a freshly created quote.

    Returns (sent, error). A missing transport or client email is not an
    error, the quote simply stays unsent.
    """
    if mailer is None:
        logger.info("quote_send_skipped", quote_id=quote.id, reason="no_mail_transport")
        return False, None
    if not client.email:
        logger.info("quote_send_skipped", quote_id=quote.id, reason="client_without_email")
        return False, None

    ref = quote_reference(quote.id)
    filename = f"{ref}.pdf"
    try:
        items, totals = quote_document(quote, service, labor_rate, materials)
        pdf_bytes = build_quote_pdf(ref, client_identity(client), company_identity(cfg), items, totals)
        storage.copy_in(pdf_bytes, filename)
    except Exception as e:
        logger.warning("quote_render_failed", quote_id=quote.id, error=str(e))
        return False, "Génération du devis impossible."

    if not quote.accept_token:
        quote.accept_token = secrets.token_hex(24)
        db.commit()
        db.refresh(quote)

    download_url = storage.get_download_url(filename)
    sign_url = f"{cfg.public_base_url}/public/sign/{quote.accept_token}"
    accept_url = f"{cfg.public_base_url}/public/accept/{quote.accept_token}"
    body = (
        f"Bonjour {client.name},\n\n"
        f"Voici votre devis pour {service.name}. Total estimé : {quote.amount} €.\n\n"
        f"Télécharger le devis : {download_url}\n\n"
        f"Signer électroniquement : {sign_url}\n\n"
        f"Accepter sans signature : {accept_url}\n\n"
        f"Merci,\n{cfg.company_name}"
    )
    try:
        mailer.send(client.email, "Votre devis plomberie BTP", body)
    except Exception as e:
        logger.warning("quote_email_failed", quote_id=quote.id, error=str(e))
        return False, "Envoi de l'email impossible."
    logger.info("quote_sent", quote_id=quote.id, ref=ref)
    return True, None


def get_quote(db: Session, user: User, quote_id: int) -> Quote:
    quote = _get_owned(db, Quote, quote_id, user.id)
    if not quote:
        raise HTTPException(status_code=404, detail="Devis introuvable.")
    return quote


def toggle_quote_ack(db: Session, user: User, quote_id: int) -> Quote:
    quote = get_quote(db, user, quote_id)
    quote.ack = not quote.ack
    db.commit()
    db.refresh(quote)
    return quote


def set_quote_status(db: Session, user: User, quote_id: int, status: Optional[str]) -> Quote:
    """Operator override. Records no acceptance timestamp or signature."""
    if status not in QUOTE_STATUSES:
        raise HTTPException(status_code=400, detail="Statut invalide.")
    quote = get_quote(db, user, quote_id)
    quote.status = status
    db.commit()
    db.refresh(quote)
    return quote


def get_quote_by_token(db: Session, token: str) -> Quote:
    quote = db.query(Quote).filter(Quote.accept_token == token).first() if token else None
    if not quote:
        raise HTTPException(status_code=404, detail="Lien invalide.")
    return quote


def accept_quote_by_token(db: Session, token: str) -> Tuple[Quote, bool]:
    """Mark the quote accepted. Returns (quote, already_accepted)."""
    quote = get_quote_by_token(db, token)
    if quote.status == QUOTE_ACCEPTED:
        return quote, True
    quote.status = QUOTE_ACCEPTED
    quote.ack = True
    quote.accepted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(quote)
    logger.info("quote_accepted", quote_id=quote.id)
    return quote, False


def sign_quote_by_token(
    db: Session,
    token: str,
    signer_name: Optional[str],
    signature_data: Optional[str],
    mailer: Optional[Mailer],
    storage: StorageProvider,
    cfg: Settings = default_settings,
) -> SignResult:
    quote = get_quote_by_token(db, token)
    if quote.signature_data:
        return SignResult(ok=True, already_signed=True)

    signer_name = (signer_name or "").strip()
    signature_data = (signature_data or "").strip()
    if not signer_name or not signature_data:
        raise HTTPException(status_code=400, detail="Signature invalide.")

    quote.status = QUOTE_ACCEPTED
    quote.ack = True
    quote.accepted_at = datetime.now(timezone.utc)
    quote.signature_name = signer_name
    quote.signature_data = signature_data
    db.commit()
    db.refresh(quote)
    logger.info("quote_signed", quote_id=quote.id)

    notify_signed_quote(db, quote, mailer, storage, cfg)
    return SignResult(ok=True)


def notify_signed_quote(
    db: Session,
    quote: Quote,
    mailer: Optional[Mailer],
    storage: StorageProvider,
    cfg: Settings = default_settings,
) -> bool:
    """Re-render with the signature and send it to the business. Never raises."""
    ref = quote_reference(quote.id)
    try:
        account = ensure_settings(db, quote.user_id)
        # Stored aggregate total is authoritative here, not the original request
        items, totals = quote_document(quote, quote.service, account.labor_rate)
        pdf_bytes = build_quote_pdf(
            ref,
            client_identity(quote.client),
            company_identity(cfg),
            items,
            totals,
            signature={"name": quote.signature_name, "data": quote.signature_data},
        )
        storage.copy_in(pdf_bytes, f"{ref}-signe.pdf")
    except Exception as e:
        logger.warning("signed_quote_render_failed", quote_id=quote.id, error=str(e))
        return False

    if mailer is None or not cfg.company_email:
        return False
    try:
        mailer.send(
            cfg.company_email,
            f"Devis signé {ref}",
            f"Le devis {ref} a été signé par {quote.signature_name}.",
            attachments=[Attachment(filename=f"{ref}-signe.pdf", content=pdf_bytes)],
        )
    except Exception as e:
        logger.warning("signed_quote_email_failed", quote_id=quote.id, error=str(e))
        return False
    return True

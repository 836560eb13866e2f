"""
Unauthenticated endpoints reached from the quote email: the stored PDF,
one-click acceptance and the signature page. The token in the URL is the
only credential.
"""
import html
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.quotes import SignRequest
from ..services import quotes as quote_service
from ..services.mailer import Mailer, get_mailer
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/public", tags=["public"])


ACCEPTED_PAGE = """<html><body style="font-family:Arial, sans-serif; padding:40px;">
  <h2>Devis accepté</h2>
  <p>Merci, votre devis est maintenant marqué comme accepté.</p>
</body></html>"""

SIGN_PAGE = """<html>
  <head>
    <meta charset="UTF-8" />
    <title>Signature électronique</title>
    <style>
      body { font-family: Arial, sans-serif; padding: 24px; }
      canvas { border: 1px solid #ddd; border-radius: 8px; width: 100%; max-width: 520px; height: 200px; }
      .row { margin-bottom: 12px; }
      button { padding: 8px 12px; margin-right: 8px; }
    </style>
  </head>
  <body>
    <h2>Signature électronique</h2>
    <p>Devis __REF__</p>
    <div class="row">
      <label for="signerName">Nom et prénom</label><br/>
      <input id="signerName" type="text" style="padding:8px; width:100%; max-width:520px;" />
    </div>
    <div class="row"><canvas id="sig" width="520" height="200"></canvas></div>
    <div class="row">
      <button id="clear">Effacer</button>
      <button id="submit">Valider la signature</button>
    </div>
    <p id="msg"></p>
    <script>
      const canvas = document.getElementById('sig');
      const ctx = canvas.getContext('2d');
      ctx.lineWidth = 2; ctx.lineCap = 'round';
      let drawing = false;
      const pos = (e) => {
        const r = canvas.getBoundingClientRect();
        const p = e.touches ? e.touches[0] : e;
        return { x: p.clientX - r.left, y: p.clientY - r.top };
      };
      const start = (e) => { drawing = true; const p = pos(e); ctx.beginPath(); ctx.moveTo(p.x, p.y); };
      const move = (e) => { if (!drawing) return; const p = pos(e); ctx.lineTo(p.x, p.y); ctx.stroke(); };
      const end = () => { drawing = false; };
      canvas.addEventListener('mousedown', start);
      canvas.addEventListener('mousemove', move);
      canvas.addEventListener('mouseup', end);
      canvas.addEventListener('mouseleave', end);
      canvas.addEventListener('touchstart', start, { passive: true });
      canvas.addEventListener('touchmove', move, { passive: true });
      canvas.addEventListener('touchend', end);
      document.getElementById('clear').onclick = () => ctx.clearRect(0, 0, canvas.width, canvas.height);
      const submit = document.getElementById('submit');
      submit.onclick = async () => {
        const signerName = document.getElementById('signerName').value.trim();
        submit.disabled = true;
        const res = await fetch('/public/sign/__TOKEN__', {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ signerName, signatureImage: canvas.toDataURL('image/png') })
        });
        const msg = document.getElementById('msg');
        if (res.ok) {
          const payload = await res.json();
          msg.textContent = payload.alreadySigned ? 'Ce devis est déjà signé.' : 'Signature enregistrée, devis accepté.';
        } else {
          msg.textContent = 'Erreur, signature non enregistrée.';
          submit.disabled = false;
        }
      };
    </script>
  </body>
</html>"""


@router.get("/quotes/{filename}")
def download_quote(filename: str, storage: StorageProvider = Depends(get_storage)):
    content: Optional[bytes] = storage.read(filename) if filename.lower().endswith(".pdf") else None
    if content is None:
        raise HTTPException(status_code=404, detail="Document introuvable.")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{html.escape(filename)}"'},
    )


@router.get("/accept/{token}", response_class=HTMLResponse)
def accept_quote(token: str, db: Session = Depends(get_db)):
    quote_service.accept_quote_by_token(db, token)
    return HTMLResponse(ACCEPTED_PAGE)


@router.get("/sign/{token}", response_class=HTMLResponse)
def sign_page(token: str, db: Session = Depends(get_db)):
    quote = quote_service.get_quote_by_token(db, token)
    page = SIGN_PAGE.replace("__REF__", quote_service.quote_reference(quote.id)).replace("__TOKEN__", html.escape(token))
    return HTMLResponse(page)


@router.post("/sign/{token}")
def sign_quote(
    token: str,
    payload: SignRequest,
    db: Session = Depends(get_db),
    mailer: Optional[Mailer] = Depends(get_mailer),
    storage: StorageProvider = Depends(get_storage),
):
    result = quote_service.sign_quote_by_token(db, token, payload.signer_name, payload.payload, mailer, storage)
    if result.already_signed:
        return {"ok": True, "alreadySigned": True}
    return {"ok": result.ok}

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Client, Material, Service, User
from ..schemas.clients import (
    ClientCreate, ClientResponse,
    ServiceCreate, ServiceResponse,
    MaterialCreate, MaterialResponse,
)
from ..auth.security import get_current_user


router = APIRouter(prefix="/api", tags=["clients"])


@router.post("/clients")
def create_client(payload: ClientCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    client = Client(
        user_id=user.id,
        name=payload.name,
        address=payload.address,
        phone=payload.phone,
        email=payload.email,
        segment=payload.segment,
        last_project=payload.last_project or "Nouveau projet",
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    return {"client": ClientResponse.model_validate(client)}


@router.post("/services")
def create_service(payload: ServiceCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service = Service(user_id=user.id, name=payload.name, base_price=payload.base_price)
    db.add(service)
    db.commit()
    db.refresh(service)
    return {"service": ServiceResponse.model_validate(service)}


@router.post("/materials")
def create_material(payload: MaterialCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    material = Material(user_id=user.id, name=payload.name, price=payload.price)
    db.add(material)
    db.commit()
    db.refresh(material)
    return {"material": MaterialResponse.model_validate(material)}

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ClientBase(BaseModel):
    name: str
    address: str
    phone: str
    email: Optional[str] = None
    segment: str
    last_project: Optional[str] = Field(default=None, alias="lastProject")

    @field_validator('name', 'address', 'phone', 'segment', mode='before')
    @classmethod
    def required_not_blank(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("Champs client incomplets.")
        return v

    @field_validator('email', 'last_project', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    class Config:
        populate_by_name = True


class ClientCreate(ClientBase):
    pass


class ClientResponse(ClientBase):
    id: int

    class Config:
        from_attributes = True
        populate_by_name = True


class ServiceCreate(BaseModel):
    name: str
    base_price: float = Field(alias="basePrice")

    @field_validator('name', mode='before')
    @classmethod
    def name_not_blank(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("Service invalide.")
        return v

    class Config:
        populate_by_name = True


class ServiceResponse(BaseModel):
    id: int
    name: str
    base_price: float

    class Config:
        from_attributes = True


class MaterialCreate(BaseModel):
    name: str
    price: float = 0

    @field_validator('name', mode='before')
    @classmethod
    def name_not_blank(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("Matériau invalide.")
        return v


class MaterialResponse(BaseModel):
    id: int
    name: str
    price: float

    class Config:
        from_attributes = True

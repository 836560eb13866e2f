from datetime import date, datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator


class MaterialLine(BaseModel):
    name: str = ""
    price: float = 0

    @field_validator('price', mode='before')
    @classmethod
    def blank_price_is_zero(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v


class QuoteCreate(BaseModel):
    client_id: int = Field(alias="clientId")
    service_id: int = Field(alias="serviceId")
    material_id: Optional[int] = Field(default=None, alias="materialId")
    # Raw user input ("1h30", "45min", ...) or an already parsed number
    hours: Union[float, str]
    discount: float = Field(default=0, ge=0, le=100)
    send_email: bool = Field(default=False, alias="sendEmail")
    materials: Optional[List[MaterialLine]] = None
    materials_total: Optional[float] = Field(default=None, alias="materialsTotal")

    @field_validator('discount', mode='before')
    @classmethod
    def blank_discount_is_zero(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v

    class Config:
        populate_by_name = True


class QuoteStatusUpdate(BaseModel):
    status: str


class QuoteResponse(BaseModel):
    id: int
    client_id: int
    service_id: int
    material_id: Optional[int] = None
    hours: float
    discount: float
    amount: int
    status: str
    sent_at: Optional[date] = None
    ack: bool
    materials_desc: str = ""
    materials_total: float = 0
    accepted_at: Optional[datetime] = None
    signature_name: Optional[str] = None

    @field_validator('materials_desc', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator('materials_total', mode='before')
    @classmethod
    def none_to_zero(cls, v):
        return v or 0

    class Config:
        from_attributes = True


class QuoteCreateResponse(BaseModel):
    quote: QuoteResponse
    email_sent: bool
    send_error: Optional[str] = None


class SignRequest(BaseModel):
    signer_name: Optional[str] = Field(default=None, alias="signerName")
    signature_image: Optional[str] = Field(default=None, alias="signatureImage")
    # Older signing pages post the data URL as "signature"
    signature: Optional[str] = None

    @property
    def payload(self) -> Optional[str]:
        return self.signature_image or self.signature

    class Config:
        populate_by_name = True

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str  # account login
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"

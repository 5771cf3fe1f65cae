from typing import Optional

from pydantic import BaseModel

# Integers travel as hex text of their minimal big-endian encoding; zero is ""


class ParamsRequest(BaseModel):
    pass


class ParamsResponse(BaseModel):
    p: str
    q: str
    g: str
    h: str


class RegisterRequest(BaseModel):
    username: str
    y1: str
    y2: str


class RegisterResponse(BaseModel):
    status: str = "success"


class ChallengeRequest(BaseModel):
    username: str
    r1: str
    r2: str


class ChallengeResponse(BaseModel):
    auth_id: str
    c: str


class SecretRequest(BaseModel):
    username: str
    s: str
    auth_id: Optional[str] = None


class SecretResponse(BaseModel):
    session: str


class ErrorResponse(BaseModel):
    error: str
    detail: str

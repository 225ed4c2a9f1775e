from typing import List
from pydantic import BaseModel


class FailureResponse(BaseModel):
    success: bool = False
    message: str


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    expiresAt: int
    maxSize: int
    allowedTypes: List[str]


class UrlResponse(BaseModel):
    success: bool = True
    url: str


class HealthResponse(BaseModel):
    status: str
    version: str
    checks: dict

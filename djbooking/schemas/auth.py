from typing import Literal
from pydantic import BaseModel, Field

class RegisterRequest(BaseModel):
    email: str  # plain str to allow .local and other dev domains
    password: str = Field(min_length=8)
    fullName: str = ""
    role: Literal["user", "dj"] = "user"

class LoginRequest(BaseModel):
    email: str
    password: str

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

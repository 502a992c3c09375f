# user_schema.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from datetime import datetime


# ---------------------------
# Create & Auth
# ---------------------------
class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


# ---------------------------
# Read
# ---------------------------
class UserRead(BaseModel):
    id: int
    full_name: str
    email: EmailStr
    is_active: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead

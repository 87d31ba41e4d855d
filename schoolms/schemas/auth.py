from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    role: str
    user_id: str
    school_id: Optional[str] = None


class RegisterSchoolRequest(BaseModel):
    """Creates the tenant and its first ADMIN account."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    school_name: str = Field(..., min_length=1, description="School name cannot be empty")
    first_name: str = "Admin"
    last_name: str = "School"
    address: Optional[str] = None
    phone: Optional[str] = None

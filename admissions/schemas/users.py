from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr


class RoleInDB(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    
    class Config:
        from_attributes = True


class UserInDB(BaseModel):
    id: int
    username: str
    full_name: str
    email: EmailStr
    is_active: bool
    role: RoleInDB
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str
    user_id: int
    role: str

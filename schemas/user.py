from pydantic import BaseModel, Field
from datetime import datetime

class UserBase(BaseModel):
    username: str = Field(min_length=3, max_length=64)

class UserCreate(UserBase):
    password: str = Field(min_length=6)

class LoginRequest(BaseModel):
    username: str
    password: str

class User(UserBase):
    id: int
    role: str
    created_at: datetime | None
    class Config:
        from_attributes = True

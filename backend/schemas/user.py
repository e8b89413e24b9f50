from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional

from models.users import Role

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for accounts created by an administrator
class UserCreate(UserBase):
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role = Role.CUSTOMER

# Output schema for user profile details
class UserResponse(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: Role
    first_name: Optional[str] = None
    last_name: Optional[str] = None

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Schema for changing a user's role
class RoleUpdate(BaseModel):
    role: Role

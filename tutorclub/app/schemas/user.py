"""User schemas used for responses."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class UserRead(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)

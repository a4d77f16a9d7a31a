from datetime import datetime
from pydantic import BaseModel


class UserRead(BaseModel):
    """Schema for reading a user."""
    id: int
    email: str | None
    name: str | None
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}

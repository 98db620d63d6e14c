from uuid import UUID
from sqlmodel import SQLModel


class AdminToken(SQLModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(SQLModel):
    admin_id: UUID

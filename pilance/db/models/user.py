from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from pilance.common.enums import UserRole
from pilance.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(String(20), nullable=False, default=UserRole.CLIENT)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from typing import Optional


class Department(SQLModel, table=True):
    """Academic department; always belongs to a school."""
    __tablename__ = "departments"

    # Primary Key must be ONLY inside sa_column
    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    code: str = Field(
        sa_column=Column(String(32), nullable=False, unique=True)
    )

    name: str = Field(
        sa_column=Column(String(128), nullable=False)
    )

    short_name: Optional[str] = Field(
        default=None,
        sa_column=Column(String(32), nullable=True)
    )

    school_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("schools.id"), nullable=True)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False)
    )

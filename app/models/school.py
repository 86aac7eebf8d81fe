from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, Boolean


class School(SQLModel, table=True):
    __tablename__ = "schools"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    name: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    code: Optional[str] = Field(
        default=None,
        sa_column=Column(String, unique=True, nullable=True)
    )

    short_name: Optional[str] = Field(
        default=None,
        sa_column=Column(String, nullable=True)
    )

    # Inactive schools drop out of every reviewer scope
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False)
    )

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, Boolean
from typing import Optional


class CentralDepartment(SQLModel, table=True):
    """
    Central administrative unit (HR, Finance, DRD, ...).
    department_type is kept as a plain string so newly added types
    can exist before the catalog knows about them.
    """
    __tablename__ = "central_departments"

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

    department_type: Optional[str] = Field(
        default=None,
        sa_column=Column(String(32), nullable=True, index=True)
    )

    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, default=True, nullable=False)
    )

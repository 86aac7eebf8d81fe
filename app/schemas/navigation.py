from typing import List, Optional
from pydantic import BaseModel


class MenuItem(BaseModel):
    name: str
    href: str


class MenuSection(BaseModel):
    key: str
    name: str
    href: str
    items: List[MenuItem] = []
    admin_only: bool = False
    # Set for "My Departments" entries: number of active capabilities
    capability_count: Optional[int] = None

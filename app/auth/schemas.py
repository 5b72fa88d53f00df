from typing import Dict
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated caller for RBAC checks.
    school_id is the tenant scope every fee operation is checked against.
    """

    id: UUID
    school_id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]

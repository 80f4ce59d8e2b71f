from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserAccount(BaseModel):
    """Identity-provider user as seen by this backend (read-only)."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None

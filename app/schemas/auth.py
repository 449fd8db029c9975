from pydantic import BaseModel
from typing import Optional

class ExternalProfile(BaseModel):
    """What the identity provider tells us about the person who signed in."""
    external_id: str
    name: str
    email: str
    avatar_url: Optional[str] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class SignInRequest(BaseModel):
    # google | email | phone; anything else is rejected by the route with a readable message
    provider: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    redirectTo: Optional[str] = None

# app/models/developer.py — Developer profile (read-only here)

from pydantic import BaseModel


class DeveloperProfile(BaseModel):
    id: str
    user_id: str
    payment_status: str

    @property
    def is_payment_active(self) -> bool:
        return self.payment_status == "active"

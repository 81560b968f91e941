# casedesk/models/admin.py
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, field_validator
from werkzeug.security import generate_password_hash, check_password_hash
from .base import Record

ROLES = ("superadmin", "subadmin")


class Admin(Record):
    username: str
    email: str
    password_hash: str = ""
    name: str
    role: Literal["superadmin", "subadmin"] = "subadmin"
    avatar: Optional[str] = None

    @field_validator("username", "email")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return v.strip().lower()

    # --- Auth helpers ---
    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"

    def public(self) -> dict:
        return self.model_dump(exclude={"password_hash"})


class Actor(BaseModel):
    """Snapshot of whoever performs a mutation, copied into every ledger entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    avatar: Optional[str] = None

    @classmethod
    def from_admin(cls, admin: Admin) -> "Actor":
        return cls(id=admin.id, name=admin.name, role=admin.role, avatar=admin.avatar)

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"


# Used by background jobs that mutate cases without a logged-in admin.
SYSTEM_ACTOR = Actor(id="system", name="Inactivity Sweeper", role="system")

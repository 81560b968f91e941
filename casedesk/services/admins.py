# casedesk/services/admins.py
import logging
from typing import Optional

from pydantic import ValidationError

from ..errors import NotFound, PermissionDenied, ValidationFailure
from ..models import Actor, Admin
from ..storage import EntityStore

log = logging.getLogger(__name__)


def require_superadmin(actor: Actor):
    if not actor.is_superadmin:
        raise PermissionDenied("superadmin access required")


class AdminService:
    def __init__(self, store: EntityStore):
        self.store = store

    def get(self, admin_id: str) -> Admin:
        admin = self.store.admins.get(admin_id)
        if admin is None:
            raise NotFound("Admin", admin_id)
        return admin

    def superadmin(self) -> Optional[Admin]:
        return self.store.admins.find_one({"role": "superadmin"})

    def authenticate(self, username: str, password: str) -> Optional[Admin]:
        """Return the admin on a matching username/password, else None."""
        admin = self.store.admins.find_one({"username": (username or "").strip().lower()})
        if admin is None or not admin.check_password(password or ""):
            log.info("Failed login for %r", username)
            return None
        return admin

    def list_admins(self, actor: Actor) -> list[Admin]:
        require_superadmin(actor)
        return self.store.admins.find()

    def create_admin(self, actor: Actor, *, username: str, email: str, password: str,
                     name: str, role: str = "subadmin", avatar: Optional[str] = None) -> Admin:
        require_superadmin(actor)
        if not password:
            raise ValidationFailure("password is required")
        try:
            admin = Admin(username=username, email=email, name=name,
                          role=role or "subadmin", avatar=avatar)
        except ValidationError as e:
            raise ValidationFailure(f"invalid Admin: {e}") from e
        if (self.store.admins.find_one({"username": admin.username})
                or self.store.admins.find_one({"email": admin.email})):
            raise ValidationFailure("Username or email already exists")
        admin.set_password(password)
        created = self.store.admins.create(admin)
        log.info("Admin %r (%s) created by %s", created.username, created.role, actor.id)
        return created

    def delete_admin(self, actor: Actor, admin_id: str):
        require_superadmin(actor)
        admin = self.get(admin_id)
        if admin.is_superadmin:
            raise PermissionDenied("Cannot delete super admin")
        # history and ownership fields keep their copied names; nothing cascades
        self.store.admins.delete(admin_id)
        log.info("Admin %r deleted by %s", admin.username, actor.id)

    def update_profile(self, admin_id: str, *, name: Optional[str] = None,
                       password: Optional[str] = None, avatar: Optional[str] = None,
                       clear_avatar: bool = False) -> Admin:
        admin = self.get(admin_id)
        changes = {}
        if name:
            changes["name"] = name
        if avatar is not None or clear_avatar:
            changes["avatar"] = avatar
        if password:
            admin.set_password(password)
            changes["password_hash"] = admin.password_hash
        if not changes:
            return admin
        updated = self.store.admins.update(admin_id, changes)
        if updated is None:
            raise NotFound("Admin", admin_id)
        return updated

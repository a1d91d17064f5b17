from typing import Optional
from dataclasses import dataclass, asdict
from enum import Enum
import re

import bcrypt

BCRYPT_HASH = re.compile(r'^\$2[aby]\$\d{2}\$.{53}$')


class PermissionLevel(Enum):
    AGENT = "agent"
    ADMIN = "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))


@dataclass
class Agent:
    """Support agent account; ``email`` is the login."""
    name: str = None
    email: str = None
    password: str = None
    permission: PermissionLevel = PermissionLevel.AGENT
    is_active: bool = True
    _id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.permission, str):
            self.permission = PermissionLevel(self.permission)
        if self.email:
            self.email = self.email.strip().lower()
        # Plain passwords are hashed once; stored hashes pass through
        if self.password and not BCRYPT_HASH.match(self.password):
            self.password = hash_password(self.password)

    def password_matches(self, password: str) -> bool:
        return check_password(password, self.password)

    def to_dict(self):
        data = asdict(self)
        if data.get("_id") is None:
            del data["_id"]
        data["permission"] = self.permission.value
        return data

    def public_dict(self):
        """Agent as exposed over the API, without the password hash."""
        data = self.to_dict()
        data.pop("password", None)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return data

from dataclasses import dataclass
from typing import Optional

from .enums import ADMIN_ROLES, Role


@dataclass(frozen=True)
class ActingUser:
    """The authenticated user on whose behalf a booking operation runs"""

    id: int
    role: Role
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER

    @property
    def is_interpreter(self) -> bool:
        return self.role == Role.INTERPRETER

    @classmethod
    def from_user(cls, user) -> "ActingUser":
        return cls(id=user.id, role=Role(user.role), email=user.email)

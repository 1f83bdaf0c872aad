from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class UserDto:
    id: str
    phone: str
    is_verified: bool
    is_active: bool
    created_at: datetime
    name: Optional[str] = None


class UserRepository(Protocol):
    def get_by_phone(self, phone: str) -> Optional[UserDto]:
        ...

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def create(self, phone: str, name: Optional[str] = None, is_verified: bool = False) -> UserDto:
        """Insert a user, or return the existing one if the number was registered concurrently."""
        ...

    def mark_verified(self, user_id: str) -> None:
        ...

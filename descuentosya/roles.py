"""
Acting principals.

Every request acts as exactly one of UserActor, BusinessActor or
AdminActor. Routes check the variant type, so an actor can never hold two
roles at once and a business id is only available on a BusinessActor.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union


class Role(str, Enum):
    USER = "user"
    BUSINESS = "business"
    ADMIN = "admin"


@dataclass(frozen=True)
class UserActor:
    user_id: str
    display_name: str = ""

    role = Role.USER

    @property
    def actor_id(self) -> str:
        return self.user_id

    @property
    def inbox(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class BusinessActor:
    business_id: int

    role = Role.BUSINESS

    @property
    def actor_id(self) -> str:
        return str(self.business_id)

    @property
    def inbox(self) -> str:
        return f"business:{self.business_id}"


@dataclass(frozen=True)
class AdminActor:
    admin_id: str
    channel: str = "admin"

    role = Role.ADMIN

    @property
    def actor_id(self) -> str:
        return self.admin_id

    @property
    def inbox(self) -> str:
        return self.channel


Actor = Union[UserActor, BusinessActor, AdminActor]


def actor_from_session(session: Mapping, admin_channel: str = "admin") -> Optional[Actor]:
    """
    Build the actor stored in a Flask session.

    The session carries ``role`` plus ``user_id`` (user and admin) or
    ``business_id`` (business). Anything incomplete or unknown yields None.
    """
    try:
        role = Role(session.get("role"))
    except ValueError:
        return None

    if role == Role.BUSINESS:
        try:
            return BusinessActor(int(session["business_id"]))
        except (KeyError, TypeError, ValueError):
            return None

    user_id = session.get("user_id")
    if not user_id:
        return None
    if role == Role.ADMIN:
        return AdminActor(str(user_id), channel=admin_channel)
    return UserActor(str(user_id), display_name=session.get("user_name") or "")

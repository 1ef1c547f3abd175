from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.internal.errors import PermissionDeniedError
from app.models import generate_id
from app.models.status import UserRole


class User(BaseModel):
    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    hotel_id: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, value):
        if isinstance(value, str) and not isinstance(value, UserRole):
            return UserRole.from_string(value)
        return value


def require_role(user: Optional[User], role: UserRole, message: str) -> User:
    """
    Check that the acting user holds a role

    Raises:
        PermissionDeniedError: If the user is missing or has another role
    """
    if user is None or user.role != role:
        raise PermissionDeniedError(message)
    return user


class UserCRUD:
    def __init__(self, database):
        self.collection = database["users"]

    async def create_user(self, user: User, session=None) -> User:
        """Create a new user"""
        await self.collection.insert_one(user.model_dump(mode="json"), session=session)
        return user

    async def get_user(self, id: str, session=None) -> Optional[User]:
        """Get a user by ID"""
        user_dict = await self.collection.find_one({"id": id}, session=session)
        if user_dict:
            return User(**user_dict)
        return None

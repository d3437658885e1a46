from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.user import User
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_or_create_user(self, username: str) -> tuple[User, bool]:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")

        result = await self.db.execute(select(User).filter(User.username == username))
        user = result.scalar_one_or_none()
        if user:
            return user, False

        user = User(username=username)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("New user created", user_id=user.id, username=username)
        return user, True

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

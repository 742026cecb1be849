"""Account registration and lookup."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.exceptions import ConflictError, DatabaseError, NotFoundError
from allerscan.models.user import User
from allerscan.schemas.user import UserCreate

logger = logging.getLogger(__name__)


class UserService:
    """Stateless; receives the request's session on every call."""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(
                select(User).where(User.email == email.strip().lower())
            )
        except SQLAlchemyError as e:
            logger.error("Database error looking up user: %s", type(e).__name__)
            raise DatabaseError(context={"error_type": type(e).__name__})
        return result.scalar_one_or_none()

    async def get_required(self, db: AsyncSession, email: str) -> User:
        """
        Raises:
            NotFoundError: no account for this email (→ 404 "user not found")
        """
        user = await self.get_by_email(db, email)
        if user is None:
            raise NotFoundError(resource="user")
        return user

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Register an account.

        Raises:
            ConflictError: the email already has an account (→ 409)
        """
        if await self.get_by_email(db, data.email) is not None:
            raise ConflictError(message="A user with this email already exists")

        user = User(email=data.email, name=data.name)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Concurrent registration of the same email
            await db.rollback()
            raise ConflictError(message="A user with this email already exists")
        except SQLAlchemyError as e:
            logger.error("Database error creating user: %s", type(e).__name__)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("User registered: %s", user.id)
        return user


user_service = UserService()

"""
AllerScan Backend — Request Dependencies
==========================================

What:  Resolves the calling user for every /api route except registration.
How:   The fronting auth layer (session/OAuth, out of scope here) forwards the
       signed-in email in the X-User-Email header. The header is looked up
       case-insensitively against users.email.

    missing / blank header → 401 {"error": "unauthorized"}
    unknown email          → 404 {"error": "not_found", "message": "... user ..."}
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from allerscan.database import get_db_session
from allerscan.exceptions import UnauthorizedError
from allerscan.models.user import User
from allerscan.services.user_service import user_service


async def get_current_user(
    x_user_email: str | None = Header(
        default=None,
        description="Email of the signed-in user, set by the auth layer",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if not x_user_email or not x_user_email.strip():
        raise UnauthorizedError()
    return await user_service.get_required(db, x_user_email)

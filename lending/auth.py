import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from lending import models
from lending.database import get_db


logger = logging.getLogger(__name__)


def sync_user(db: Session, user_id: str, name: Optional[str], image: Optional[str]):
    """
    Mirror the caller's identity-provider profile into the users table.

    Inserts the user on first sight and refreshes name/image when the
    provider reports new values. Returns the User row.
    """
    user = db.get(models.User, user_id)
    if user is None:
        user = models.User(id=user_id, name=name, image=image)
        db.add(user)
        db.commit()
        logger.info("Registered user %s from identity provider", user_id)
        return user

    changed = False
    if name is not None and user.name != name:
        user.name = name
        changed = True
    if image is not None and user.image != image:
        user.image = image
        changed = True
    if changed:
        db.commit()
    return user


async def current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_image: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[str]:
    """
    Dependency resolving the signed-in caller, if any.

    Internal Working:
    1. The identity proxy in front of this service forwards the session
       user as X-User-Id, X-User-Name and X-User-Image headers
    2. FastAPI maps those headers onto the parameters above
    3. A present id is synced into the users table
    4. Only the id is handed on: the lending core takes the caller as
       an explicit argument and never reads request state itself

    Returns:
        The caller's user id, or None when the request carries no identity
    """
    if not x_user_id or not x_user_id.strip():
        return None
    user_id = x_user_id.strip()
    sync_user(db, user_id, x_user_name, x_user_image)
    return user_id


from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_USER_EMAIL, DEFAULT_USER_NAME
from app.core.deps import get_db
from app.models.user import User


# Authentication is stubbed: every request runs as the default user.
def get_current_user(db: Session = Depends(get_db)) -> User:
    user = db.query(User).filter(User.email == DEFAULT_USER_EMAIL).first()
    if user:
        return user

    user = User(email=DEFAULT_USER_EMAIL, name=DEFAULT_USER_NAME)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # created by a concurrent request
        db.rollback()
        return db.query(User).filter(User.email == DEFAULT_USER_EMAIL).one()

    db.refresh(user)
    return user

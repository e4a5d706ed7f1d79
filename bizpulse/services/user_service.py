"""
User Service - Business Logic for User Operations
"""
from typing import Optional
from sqlalchemy.orm import Session
from bizpulse.models import User
from bizpulse.core.security import get_password_hash, verify_password


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def create(self, email: str, password: str, is_admin: bool = False) -> User:
        user = User(
            email=email.lower(),
            hashed_password=get_password_hash(password),
            is_admin=is_admin
        )
        self.db.add(user)
        self.db.flush()
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, else None"""
        user = self.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user

# shopauth/models/user.py
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer, String
from shopauth.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    organization = Column(String(255), index=True, nullable=True)
    # NULL for accounts provisioned through Shopify; those cannot log in locally
    hashed_password = Column(String(255), nullable=True)
    role = Column(String(255), nullable=False, default="user")
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

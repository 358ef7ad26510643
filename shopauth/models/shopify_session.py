# shopauth/models/shopify_session.py
from sqlalchemy import Boolean, Column, Integer, String, Text
from shopauth.database import Base

class ShopifySession(Base):
    __tablename__ = "shopify_sessions"

    id = Column(String(255), primary_key=True)
    shop = Column(String(255), index=True, nullable=False)
    state = Column(String(255), nullable=False)
    isonline = Column(Boolean(), nullable=False)
    scope = Column(String(1024), nullable=True)
    # epoch seconds, NULL means the grant does not expire
    expires = Column(Integer, nullable=True)
    onlineaccessinfo = Column(Text, nullable=True)
    accesstoken = Column(String(255), nullable=True)

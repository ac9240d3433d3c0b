from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, func

from menuboard.core.database import Base

SHOP_TYPES = ("restaurant", "barber")


class Shop(Base):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String(120), nullable=False)
    slug = Column(String(80), unique=True, index=True, nullable=False)
    type = Column(String(32), nullable=False, default="restaurant")
    theme_config = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

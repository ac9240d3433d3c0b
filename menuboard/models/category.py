from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import relationship

from menuboard.core.database import Base


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (Index("ix_categories_shop_order", "shop_id", "order_index"),)

    id = Column(Integer, primary_key=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(120), nullable=False)
    icon = Column(String(50), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Children are never touched by the ORM on delete: the RESTRICT foreign key
    # on menu_items is what rejects deleting a category that still has items.
    items = relationship(
        "MenuItem",
        back_populates="category",
        order_by="[MenuItem.order_index, MenuItem.id]",
        passive_deletes="all",
    )

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem
from menuboard.models.user import User
from menuboard.services import ordering
from menuboard.services.change_feed import ChangeEvent, ChangeFeed
from menuboard.services.errors import action_boundary
from menuboard.services.menu import menu_item_to_dict
from menuboard.services.revalidation import PageCache
from menuboard.services.shops import get_owned_shop

logger = logging.getLogger(__name__)
SEED_PREFIX = "[DEMO_SEED]"

DEMO_CATEGORIES = [
    {
        "name": "Starters",
        "icon": "Salad",
        "items": [
            {"name": "Caesar Salad", "description": "Romaine lettuce, croutons, parmesan cheese, and caesar dressing.", "price": 12.5, "icon": "Salad"},
            {"name": "Truffle Fries", "description": "Crispy fries with truffle oil and parmesan.", "price": 9.0, "icon": "Pizza"},
            {"name": "Tomato Soup", "description": "Creamy tomato soup with basil.", "price": 8.5, "icon": "Soup"},
        ],
    },
    {
        "name": "Mains",
        "icon": "Utensils",
        "items": [
            {"name": "Grilled Salmon", "description": "Fresh atlantic salmon with roasted vegetables.", "price": 24.0, "icon": "Fish"},
            {"name": "Cheeseburger", "description": "Angus beef patty, cheddar, lettuce, tomato, house sauce.", "price": 16.5, "icon": "Sandwich"},
            {"name": "Margherita Pizza", "description": "Tomato sauce, mozzarella, and fresh basil.", "price": 15.0, "icon": "Pizza"},
            {"name": "Steak Frites", "description": "Ribeye steak with herb butter and fries.", "price": 29.0, "icon": "Beef"},
        ],
    },
    {
        "name": "Desserts",
        "icon": "Croissant",
        "items": [
            {"name": "Chocolate Cake", "description": "Rich chocolate layer cake.", "price": 9.0, "icon": "Cake"},
            {"name": "Ice Cream", "description": "Three scoops of vanilla bean ice cream.", "price": 6.5, "icon": "IceCream"},
            {"name": "Tiramisu", "description": "Classic italian coffee-flavored dessert.", "price": 10.0, "icon": "Coffee"},
        ],
    },
    {
        "name": "Beverages",
        "icon": "Coffee",
        "items": [
            {"name": "Espresso", "description": "Double shot of espresso.", "price": 3.5, "icon": "Coffee"},
            {"name": "Fresh Lemonade", "description": "House-made sparkling lemonade.", "price": 5.0, "icon": "GlassWater"},
            {"name": "Craft Beer", "description": "Local IPA on tap.", "price": 7.0, "icon": "Beer"},
            {"name": "Red Wine", "description": "Glass of Cabernet Sauvignon.", "price": 11.0, "icon": "Wine"},
        ],
    },
]


@action_boundary
def seed_demo_data(
    db: Session,
    owner: Optional[User],
    shop_id: int,
    *,
    feed: Optional[ChangeFeed] = None,
    pages: Optional[PageCache] = None,
) -> dict:
    shop = get_owned_shop(db, owner, shop_id)
    next_index = ordering.next_category_index(db, shop.id)
    created_categories = 0
    events: list[ChangeEvent] = []

    for demo in DEMO_CATEGORIES:
        category = Category(shop_id=shop.id, name=demo["name"], icon=demo["icon"], order_index=next_index)
        items = [
            MenuItem(category=category, order_index=position, is_available=True, **fields)
            for position, fields in enumerate(demo["items"])
        ]
        db.add(category)
        db.add_all(items)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("%s category insert failed shop_id=%s name=%s", SEED_PREFIX, shop.id, demo["name"])
            continue

        next_index += 1
        created_categories += 1
        events.extend(ChangeEvent.created(menu_item_to_dict(item)) for item in items)

    if feed is not None:
        feed.publish_all(events)
    if pages is not None:
        pages.revalidate_shop(shop)
    logger.info("%s shop_id=%s categories=%s items=%s", SEED_PREFIX, shop.id, created_categories, len(events))
    return {"categories_created": created_categories, "items_created": len(events)}

from menuboard.models.user import User
from menuboard.models.shop import Shop
from menuboard.models.category import Category
from menuboard.models.menu_item import MenuItem

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

HEX_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
RADIUS_PATTERN = re.compile(r"^\d+(\.\d+)?(px|rem|em|%)$")

# Icon names offered by the customization form and the category editor.
ICON_NAMES = (
    "Utensils",
    "Coffee",
    "Pizza",
    "Beer",
    "Wine",
    "IceCream",
    "Sandwich",
    "Soup",
    "Croissant",
)
DEFAULT_ICON = "Utensils"

DEFAULT_THEME = {
    "primary_color": "#2563eb",
    "background_color": "#ffffff",
    "text_color": "#1f2937",
    "border_radius": "0.5rem",
    "icon": DEFAULT_ICON,
}


class ShopCreate(BaseModel):
    name: str = Field("", max_length=120)
    slug: str | None = Field(default=None, max_length=80)
    type: Literal["restaurant", "barber"] = "restaurant"


class ThemeConfig(BaseModel):
    primary_color: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    border_radius: str | None = None
    icon: str | None = None

    @field_validator("primary_color", "background_color", "text_color")
    @classmethod
    def validate_hex(cls, value: str | None) -> str | None:
        if value is None:
            return value
        candidate = value.strip()
        if not HEX_PATTERN.match(candidate):
            raise ValueError("Invalid color. Use hexadecimal #RRGGBB.")
        return candidate

    @field_validator("border_radius")
    @classmethod
    def validate_radius(cls, value: str | None) -> str | None:
        if value is None:
            return value
        candidate = value.strip()
        if not RADIUS_PATTERN.match(candidate):
            raise ValueError("Invalid radius. Use a CSS length such as 0.5rem or 8px.")
        return candidate

    @field_validator("icon")
    @classmethod
    def validate_icon(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if value not in ICON_NAMES:
            raise ValueError(f"Unknown icon. Use one of: {', '.join(ICON_NAMES)}")
        return value


def resolve_theme(theme_config: dict | None) -> dict:
    return {**DEFAULT_THEME, **(theme_config or {})}

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from storefront.cart.models import CatalogItemSnapshot
from storefront.db import sqlite as db
from storefront.exceptions import MenuItemNotFound

log = logging.getLogger(__name__)

FORM_ERROR = "formError"

# replaces pydantic's default wording for the checks admins hit most
_MESSAGES = {
    ("category", "string_too_short"): "Select an appropriate category",
    ("price", "greater_than_equal"): "Price must have a minimum value of 1",
    ("price", "missing"): "Price is required",
    ("price", "finite_number"): "Price must be a valid number",
}


class MenuItemForm(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    category: str = Field(min_length=2, max_length=100)
    price: float = Field(ge=1, allow_inf_nan=False)
    image: str = ""

    @field_validator("name", "description", "category", "image", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", mode="before")
    @classmethod
    def _blank_price(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().replace(",", ".")
            if v == "":
                raise PydanticCustomError("missing", "Price is required")
        return v

    @field_validator("image")
    @classmethod
    def _image_url(cls, v: str) -> str:
        if v == "":
            return v
        u = urlparse(v)
        if u.scheme not in ("http", "https") or not u.netloc:
            raise PydanticCustomError("url", "Invalid image URL")
        return v


@dataclass
class FormResult:
    success: bool = False
    errors: Dict[str, List[str]] = field(default_factory=dict)
    data: Optional[Dict[str, Any]] = None
    message: str = ""


def validate_menu_form(raw: Mapping[str, Any]) -> tuple[Optional[MenuItemForm], Dict[str, List[str]]]:
    payload = {k: raw.get(k) for k in ("name", "description", "category", "price", "image") if raw.get(k) is not None}
    try:
        return MenuItemForm.model_validate(payload), {}
    except ValidationError as e:
        errors: Dict[str, List[str]] = {}
        for err in e.errors():
            loc = err.get("loc") or ()
            field_name = str(loc[0]) if loc else FORM_ERROR
            msg = _MESSAGES.get((field_name, err["type"]), err["msg"])
            errors.setdefault(field_name, []).append(msg)
        return None, errors


def get_menu_items(db_path: str) -> List[Dict[str, Any]]:
    return db.list_menu_items(db_path)


def get_menu_item(db_path: str, item_id: str) -> Optional[Dict[str, Any]]:
    return db.get_menu_item(db_path, item_id)


def require_menu_item(db_path: str, item_id: str) -> Dict[str, Any]:
    item = db.get_menu_item(db_path, item_id)
    if item is None:
        raise MenuItemNotFound(item_id)
    return item


def catalog_snapshot(item: Mapping[str, Any]) -> CatalogItemSnapshot:
    return CatalogItemSnapshot(
        id=item["id"],
        name=item["name"],
        description=item["description"] or "",
        category=item["category"],
        price=item["price"],
        image=item.get("image") or None,
    )


def create_menu_item(db_path: str, raw: Mapping[str, Any]) -> FormResult:
    form, errors = validate_menu_form(raw)
    if form is None:
        return FormResult(errors=errors)
    try:
        item = db.add_menu_item(
            db_path, form.name, form.description, form.category, form.price, form.image or None
        )
    except sqlite3.Error:
        log.exception("menu item insert failed")
        return FormResult(errors={FORM_ERROR: ["Failed to create menu item. Please try again."]})
    log.info("menu item %s created: %s", item["id"], item["name"])
    return FormResult(success=True, data=item, message="Menu item created successfully!")


def update_menu_item(db_path: str, item_id: str, raw: Mapping[str, Any]) -> FormResult:
    form, errors = validate_menu_form(raw)
    if form is None:
        return FormResult(errors=errors)
    try:
        current = db.get_menu_item(db_path, item_id)
        if current is None:
            return FormResult(errors={FORM_ERROR: ["Menu item not found."]})
        # empty image field keeps the stored one
        image = form.image or current["image"]
        item = db.update_menu_item(
            db_path, item_id, form.name, form.description, form.category, form.price, image
        )
    except sqlite3.Error:
        log.exception("menu item %s update failed", item_id)
        return FormResult(errors={FORM_ERROR: ["Failed to update menu item. Please try again."]})
    if item is None:
        return FormResult(errors={FORM_ERROR: ["Menu item not found."]})
    return FormResult(success=True, data=item, message="Menu item updated successfully!")


def delete_menu_item(db_path: str, item_id: str) -> FormResult:
    try:
        deleted = db.delete_menu_item(db_path, item_id)
    except sqlite3.Error:
        log.exception("menu item %s delete failed", item_id)
        return FormResult(errors={FORM_ERROR: ["Failed to delete menu item"]})
    if not deleted:
        return FormResult(errors={FORM_ERROR: ["Menu item not found."]})
    log.info("menu item %s deleted", item_id)
    return FormResult(success=True, message="Menu item deleted successfully!")

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from ..errors import ValidationError
from ..models import ShippingMethod

NAME_MAX_LENGTH = 100
SHIPPING_HOURS_MAX = 999
MONEY_MAX = Decimal("999999999")


def _decimal(raw: Any) -> Optional[Decimal]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    if abs(value) > MONEY_MAX:
        # Too wide to quantize; the range check reports it
        return value
    return value.quantize(Decimal("0.01"))


def validate_listing_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize listing form fields, collecting every field error before failing."""
    errors: Dict[str, str] = {}
    out: Dict[str, Any] = {}

    raw_name = data.get("name")
    name = raw_name.strip() if isinstance(raw_name, str) else ""
    if raw_name is not None and not isinstance(raw_name, str):
        errors["name"] = "Name must be text"
    elif not name:
        errors["name"] = "Name is required"
    elif len(name) > NAME_MAX_LENGTH:
        errors["name"] = f"Name must be at most {NAME_MAX_LENGTH} characters"
    out["name"] = name

    price = _decimal(data.get("price"))
    if price is None:
        errors["price"] = "Price must be a number"
    elif price < 0 or price > MONEY_MAX:
        errors["price"] = "Price must be between 0 and 999999999"
    out["price"] = price

    description = data.get("description")
    out["description"] = (description.strip() or None) if isinstance(description, str) else None

    raw_hours = data.get("shipping_time_hours")
    if raw_hours is None or raw_hours == "":
        out["shipping_time_hours"] = 24
    else:
        try:
            hours = int(str(raw_hours).strip())
        except ValueError:
            errors["shipping_time_hours"] = "Shipping time must be a whole number of hours"
        else:
            if not 0 <= hours <= SHIPPING_HOURS_MAX:
                errors["shipping_time_hours"] = f"Shipping time must be between 0 and {SHIPPING_HOURS_MAX} hours"
            out["shipping_time_hours"] = hours

    method = str(data.get("shipping_method") or ShippingMethod.EXPRESS.value).strip().lower()
    if method not in {m.value for m in ShippingMethod}:
        errors["shipping_method"] = "Unknown shipping method"
    out["shipping_method"] = method

    raw_fee = data.get("shipping_fee")
    if raw_fee is None or raw_fee == "":
        out["shipping_fee"] = Decimal("0.00")
    else:
        fee = _decimal(raw_fee)
        if fee is None:
            errors["shipping_fee"] = "Shipping fee must be a number"
        elif fee < 0 or fee > MONEY_MAX:
            errors["shipping_fee"] = "Shipping fee must be between 0 and 999999999"
        out["shipping_fee"] = fee

    if errors:
        raise ValidationError("Invalid listing fields", details={"fields": errors})
    return out


TITLE_MAX_LENGTH = 100
AUTHOR_NAME_MAX_LENGTH = 50
PRODUCT_COMMENT_MAX_LENGTH = 1000


def _text(data: Mapping[str, Any], key: str) -> Optional[str]:
    raw = data.get(key)
    if raw is None:
        return ""
    if not isinstance(raw, str):
        return None
    return raw.strip()


def validate_post_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    errors: Dict[str, str] = {}

    title = _text(data, "title")
    if title is None:
        errors["title"] = "Title must be text"
    elif not title:
        errors["title"] = "Title is required"
    elif len(title) > TITLE_MAX_LENGTH:
        errors["title"] = f"Title must be at most {TITLE_MAX_LENGTH} characters"

    content = _text(data, "content")
    if content is None:
        errors["content"] = "Content must be text"
    elif not content:
        errors["content"] = "Content is required"

    if errors:
        raise ValidationError("Invalid post fields", details={"fields": errors})
    return {"title": title, "content": content}


def validate_comment(data: Mapping[str, Any], max_length: Optional[int] = None) -> str:
    content = _text(data, "content")
    if content is None:
        problem = "Content must be text"
    elif not content:
        problem = "Content is required"
    elif max_length is not None and len(content) > max_length:
        problem = f"Content must be at most {max_length} characters"
    else:
        return content
    raise ValidationError("Invalid comment", details={"fields": {"content": problem}})


def validate_rating(raw: Any) -> int:
    if raw is None or raw == "":
        return 5
    try:
        rating = int(str(raw).strip())
    except ValueError:
        rating = 0
    if not 1 <= rating <= 5:
        raise ValidationError("Invalid rating", details={"fields": {"rating": "Rating must be 1 to 5"}})
    return rating

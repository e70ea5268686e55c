from decimal import Decimal

import pytest

from minishare.errors import ValidationError
from minishare.services.validation import validate_listing_fields


def test_defaults_fill_optional_fields():
    data = validate_listing_fields({"name": "  Desk Lamp ", "price": "29.9"})

    assert data == {
        "name": "Desk Lamp",
        "price": Decimal("29.90"),
        "description": None,
        "shipping_time_hours": 24,
        "shipping_method": "express",
        "shipping_fee": Decimal("0.00"),
    }


def test_accepts_boundaries():
    data = validate_listing_fields(
        {
            "name": "x" * 100,
            "price": "0",
            "shipping_time_hours": "999",
            "shipping_method": "FREE_SHIPPING",
            "shipping_fee": "0.5",
            "description": "  ",
        }
    )
    assert data["shipping_time_hours"] == 999
    assert data["shipping_method"] == "free_shipping"
    assert data["shipping_fee"] == Decimal("0.50")
    assert data["description"] is None


@pytest.mark.parametrize(
    "fields,bad",
    [
        ({"name": "x" * 101, "price": "1"}, "name"),
        ({"name": "Lamp", "price": "abc"}, "price"),
        ({"name": "Lamp", "price": "NaN"}, "price"),
        ({"name": "Lamp", "price": "1", "shipping_time_hours": "-1"}, "shipping_time_hours"),
        ({"name": "Lamp", "price": "1", "shipping_time_hours": "1.5"}, "shipping_time_hours"),
        ({"name": "Lamp", "price": "1", "shipping_method": "drone"}, "shipping_method"),
        ({"name": "Lamp", "price": "1", "shipping_fee": "-0.01"}, "shipping_fee"),
    ],
)
def test_reports_the_offending_field(fields, bad):
    with pytest.raises(ValidationError) as exc:
        validate_listing_fields(fields)
    assert list(exc.value.details["fields"]) == [bad]
    assert exc.value.http_status == 422


@pytest.mark.parametrize("raw", ["1e30", "-1e30", "1000000000"])
def test_out_of_range_money_is_a_field_error(raw):
    with pytest.raises(ValidationError) as exc:
        validate_listing_fields({"name": "Lamp", "price": "1", "shipping_fee": raw})
    assert list(exc.value.details["fields"]) == ["shipping_fee"]


def test_huge_price_is_a_field_error():
    with pytest.raises(ValidationError) as exc:
        validate_listing_fields({"name": "Lamp", "price": "1e30"})
    assert exc.value.details["fields"] == {"price": "Price must be between 0 and 999999999"}


@pytest.mark.parametrize("raw", [123, ["Lamp"], {"x": 1}])
def test_non_text_name_is_a_field_error(raw):
    with pytest.raises(ValidationError) as exc:
        validate_listing_fields({"name": raw, "price": "1"})
    assert exc.value.details["fields"] == {"name": "Name must be text"}

"""Tests for product form state and validation."""

import pytest

from catalog_upload.core.errors import ValidationFailure
from catalog_upload.product.form import (
    DESCRIPTION_MAX_LENGTH,
    NAME_MAX_LENGTH,
    ProductForm,
    normalize_price,
)
from catalog_upload.product.models import ProductFlag


@pytest.fixture
def form(catalog):
    return ProductForm(catalog)


class TestColors:
    """Tests for color entry."""

    @pytest.mark.parametrize("hex_code", ["#000", "#FFFFFF", "#abc123", "#AbC"])
    def test_valid_hex_is_added(self, form, hex_code):
        color = form.add_color("Tone", hex_code)

        assert color.hex == hex_code
        assert form.colors == [color]

    @pytest.mark.parametrize("hex_code", ["000000", "#12", "#gggggg", "#1234", "#0000000", ""])
    def test_invalid_hex_is_rejected(self, form, hex_code):
        with pytest.raises(ValidationFailure) as exc_info:
            form.add_color("Tone", hex_code)

        assert exc_info.value.fields == ["colors.hex"]
        assert exc_info.value.message == "Enter a valid hex code (e.g., #000000 or #FFF)"
        assert form.colors == []

    def test_blank_color_name_is_rejected(self, form):
        with pytest.raises(ValidationFailure) as exc_info:
            form.add_color("  ", "#000")

        assert exc_info.value.field_errors[0].error_message == "Please enter a color name."

    def test_color_name_is_trimmed(self, form):
        assert form.add_color("  Navy ", "#001f3f").name == "Navy"

    def test_remove_color_by_position(self, form):
        form.add_color("Black", "#000")
        form.add_color("White", "#fff")

        removed = form.remove_color(0)

        assert removed.name == "Black"
        assert [c.name for c in form.colors] == ["White"]


class TestPricing:
    """Tests for two-decimal price normalisation."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("19.999", 20.0),
            ("19.994", 19.99),
            ("0.005", 0.01),
            ("1.005", 1.01),
            (12, 12.0),
            ("  7.5 ", 7.5),
        ],
    )
    def test_half_up_rounding(self, raw, expected):
        assert normalize_price(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_none(self, raw):
        assert normalize_price(raw) is None

    @pytest.mark.parametrize("raw", ["abc", "-1", "NaN", "Infinity"])
    def test_invalid_price_is_rejected(self, raw):
        with pytest.raises(ValidationFailure) as exc_info:
            normalize_price(raw, "sale_price")

        assert exc_info.value.fields == ["sale_price"]

    def test_blur_rewrites_input(self, form):
        form.set_price("19.999")

        assert form.blur_price() == 20.0
        assert form.price_input == "20.00"

    def test_blur_sale_price(self, form):
        form.set_sale_price("4.5")

        assert form.blur_sale_price() == 4.5
        assert form.sale_price_input == "4.50"


class TestFlags:
    """Tests for the merchandising flag ceiling."""

    def test_fourth_flag_is_rejected(self, form):
        for flag in (ProductFlag.IS_ACTIVE, ProductFlag.IS_ON_SALE, ProductFlag.IS_NEW_ARRIVAL):
            assert form.toggle_flag(flag) is True

        assert form.toggle_flag(ProductFlag.IS_LIMITED_EDITION) is False
        assert form.flags.is_set(ProductFlag.IS_LIMITED_EDITION) is False
        assert len(form.flags.active()) == 3

    def test_turning_off_is_always_allowed(self, form):
        for flag in (ProductFlag.IS_ACTIVE, ProductFlag.IS_ON_SALE, ProductFlag.IS_NEW_ARRIVAL):
            form.toggle_flag(flag)

        assert form.toggle_flag(ProductFlag.IS_ON_SALE) is True
        assert form.toggle_flag(ProductFlag.IS_FAST_SELLING) is True
        assert form.flags.active() == [
            ProductFlag.IS_ACTIVE,
            ProductFlag.IS_FAST_SELLING,
            ProductFlag.IS_NEW_ARRIVAL,
        ]

    def test_toggle_accepts_field_name(self, form):
        assert form.toggle_flag("isOnSale") is True
        assert form.flags.is_on_sale is True


class TestReferenceFields:
    """Tests for category and collection selection."""

    def test_category_by_name_stores_identifier(self, form):
        assert form.select_category("Shirts") == "cat_shirts"
        assert form.category == "cat_shirts"

    def test_unknown_category(self, form):
        with pytest.raises(ValidationFailure) as exc_info:
            form.select_category("Hats")

        error = exc_info.value.field_errors[0]
        assert error.field_name == "category"
        assert error.allowed_values == ["cat_shirts", "cat_pants"]

    def test_collections_are_unique(self, form):
        assert form.add_collection("col_summer") is True
        assert form.add_collection("Summer") is False
        assert form.collections == ["col_summer"]

    def test_remove_collection(self, form):
        form.add_collection("col_linen")

        assert form.remove_collection("Linen") is True
        assert form.remove_collection("col_linen") is False

    def test_unknown_collection(self, form):
        with pytest.raises(ValidationFailure):
            form.add_collection("Winter")


class TestValidate:
    """Tests for whole-form validation."""

    def test_filled_form_is_valid(self, filled_form):
        assert filled_form.validate() == []
        assert filled_form.is_submittable() is True

    def test_validate_leaves_price_entries_untouched(self, filled_form):
        filled_form.set_sale_price("9.999")

        assert filled_form.is_submittable() is True
        assert filled_form.validate() == []

        assert (filled_form.price_input, filled_form.price) == ("49.999", None)
        assert (filled_form.sale_price_input, filled_form.sale_price) == ("9.999", None)

    def test_to_draft_blurs_pending_prices(self, filled_form):
        filled_form.set_sale_price("9.999")

        draft = filled_form.to_draft(["https://cdn.test/a.webp"])

        assert (draft.price, draft.sale_price) == (50.0, 10.0)
        assert filled_form.price_input == "50.00"

    def test_empty_form_reports_required_fields(self, form):
        fields = [e.field_name for e in form.validate()]

        assert fields == ["name", "slug", "category", "price"]

    def test_whitespace_name_is_missing(self, filled_form):
        filled_form.name = "   "

        assert [e.field_name for e in filled_form.validate()] == ["name"]

    def test_length_limits(self, filled_form):
        filled_form.name = "n" * (NAME_MAX_LENGTH + 1)
        filled_form.description = "d" * (DESCRIPTION_MAX_LENGTH + 1)

        assert [e.field_name for e in filled_form.validate()] == ["name", "description"]

    def test_bad_price_entry_is_reported_once(self, filled_form):
        filled_form.set_price("free")

        assert [e.field_name for e in filled_form.validate()] == ["price"]

    def test_to_draft(self, filled_form):
        draft = filled_form.to_draft(["https://cdn.test/a.webp"])

        assert draft.images == ["https://cdn.test/a.webp"]
        assert draft.price == 50.0
        assert draft.size == "S, M, L"

    def test_to_draft_refuses_invalid_form(self, form):
        with pytest.raises(ValidationFailure):
            form.to_draft(["https://cdn.test/a.webp"])

    def test_reset(self, filled_form):
        filled_form.toggle_flag(ProductFlag.IS_ACTIVE)

        filled_form.reset()

        assert filled_form.name == ""
        assert filled_form.collections == []
        assert filled_form.flags.active() == []

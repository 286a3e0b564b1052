"""Local state and validation of the product form.

- Required name, slug, category and price; bounded text lengths
- Colors validated when they are added, never stored when invalid
- Prices normalised to two decimals on blur
- Merchandising flag ceiling enforced on toggle
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import ValidationError

from catalog_upload.core import get_logger
from catalog_upload.core.errors import ValidationFailure
from catalog_upload.product.models import (
    Color,
    FlagSet,
    ProductDraft,
    ProductFlag,
)
from catalog_upload.product.reference import ReferenceCatalog

logger = get_logger(__name__)

NAME_MAX_LENGTH = 100
SLUG_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
SIZE_MAX_LENGTH = 50

_CENTS = Decimal("0.01")

PriceInput = Union[str, int, float, None]


@dataclass
class FieldValidationError:
    """Represents a validation error for a specific form field."""
    field_name: str
    error_message: str
    provided_value: Optional[str] = None
    allowed_values: Optional[list[str]] = None


def normalize_price(raw: PriceInput, field_name: str = "price") -> Optional[float]:
    """Round a price entry to two decimals, half-up.

    ``19.999`` becomes ``20.0``; a blank entry becomes None.

    Raises:
        ValidationFailure: Entry is not a non-negative number
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise _failure(field_name, f"{field_name} must be a number", text) from e
    if not value.is_finite() or value < 0:
        raise _failure(field_name, f"{field_name} must be a non-negative number", text)
    return float(value.quantize(_CENTS, rounding=ROUND_HALF_UP))


def _failure(field_name: str, message: str, provided: Optional[str] = None) -> ValidationFailure:
    return ValidationFailure(
        message,
        field_errors=[FieldValidationError(field_name, message, provided_value=provided)],
    )


class ProductForm:
    """Holds every non-asset field of the product draft.

    All operations are synchronous and never touch the network.
    """

    def __init__(self, catalog: ReferenceCatalog):
        """Initialize an empty form.

        Args:
            catalog: Known categories and collections
        """
        self.catalog = catalog
        self.reset()

    def reset(self) -> None:
        """Clear every field back to its empty state."""
        self.name = ""
        self.slug = ""
        self.description = ""
        self.size = ""
        self.colors: list[Color] = []
        self.category: Optional[str] = None
        self.collections: list[str] = []
        self.price_input = ""
        self.price: Optional[float] = None
        self.sale_price_input = ""
        self.sale_price: Optional[float] = None
        self.flags = FlagSet()

    # ==================== Colors ====================

    def add_color(self, name: str, hex_code: str) -> Color:
        """Append a color after validating it.

        Raises:
            ValidationFailure: Blank name or hex not matching #RGB / #RRGGBB
        """
        try:
            color = Color(name=name, hex=hex_code)
        except ValidationError as e:
            errors = [
                FieldValidationError(
                    field_name=f"colors.{err['loc'][0]}",
                    error_message=_clean_message(err["msg"]),
                    provided_value=str(err.get("input")),
                )
                for err in e.errors()
            ]
            raise ValidationFailure(errors[0].error_message, field_errors=errors) from e
        self.colors.append(color)
        return color

    def remove_color(self, position: int) -> Color:
        """Remove the color at a display position.

        Raises:
            IndexError: No color at that position
        """
        return self.colors.pop(position)

    # ==================== Reference fields ====================

    def select_category(self, value: str) -> str:
        """Select a category by identifier or name; stores the identifier."""
        item = self.catalog.resolve_category(value)
        if item is None:
            raise ValidationFailure(
                f"Unknown category: {value}",
                field_errors=[
                    FieldValidationError(
                        "category",
                        "Unknown category",
                        provided_value=value,
                        allowed_values=[c.id for c in self.catalog.categories],
                    )
                ],
            )
        self.category = item.id
        return item.id

    def add_collection(self, value: str) -> bool:
        """Add a collection; returns False if it was already selected."""
        item = self.catalog.resolve_collection(value)
        if item is None:
            raise ValidationFailure(
                f"Unknown collection: {value}",
                field_errors=[
                    FieldValidationError(
                        "collections",
                        "Unknown collection",
                        provided_value=value,
                        allowed_values=[c.id for c in self.catalog.collections],
                    )
                ],
            )
        if item.id in self.collections:
            return False
        self.collections.append(item.id)
        return True

    def remove_collection(self, value: str) -> bool:
        item = self.catalog.resolve_collection(value)
        collection_id = item.id if item else value
        if collection_id not in self.collections:
            return False
        self.collections.remove(collection_id)
        return True

    # ==================== Pricing ====================

    def set_price(self, raw: PriceInput) -> None:
        self.price_input = "" if raw is None else str(raw)

    def blur_price(self) -> Optional[float]:
        self.price = normalize_price(self.price_input, "price")
        if self.price is not None:
            self.price_input = f"{self.price:.2f}"
        return self.price

    def set_sale_price(self, raw: PriceInput) -> None:
        self.sale_price_input = "" if raw is None else str(raw)

    def blur_sale_price(self) -> Optional[float]:
        self.sale_price = normalize_price(self.sale_price_input, "sale_price")
        if self.sale_price is not None:
            self.sale_price_input = f"{self.sale_price:.2f}"
        return self.sale_price

    # ==================== Flags ====================

    def toggle_flag(self, flag: ProductFlag) -> bool:
        """Flip a flag; False means the flag ceiling rejected the toggle."""
        accepted = self.flags.toggle(flag)
        if not accepted:
            logger.info(
                "flag_toggle_rejected",
                flag=ProductFlag(flag).value,
                active=[f.value for f in self.flags.active()],
            )
        return accepted

    # ==================== Validation ====================

    def validate(self) -> list[FieldValidationError]:
        """Check every field without changing any of them.

        Pending price entries are checked as they would be normalised on blur.

        Returns:
            One FieldValidationError per failing field, empty when valid.
        """
        errors: list[FieldValidationError] = []

        _require_text(errors, "name", self.name, NAME_MAX_LENGTH)
        _require_text(errors, "slug", self.slug, SLUG_MAX_LENGTH)
        _bound_text(errors, "description", self.description, DESCRIPTION_MAX_LENGTH)
        _bound_text(errors, "size", self.size, SIZE_MAX_LENGTH)

        if self.category is None:
            errors.append(FieldValidationError("category", "Category is required"))
        elif not self.catalog.is_category(self.category):
            errors.append(
                FieldValidationError("category", "Unknown category", provided_value=self.category)
            )

        for collection_id in self.collections:
            if not self.catalog.is_collection(collection_id):
                errors.append(
                    FieldValidationError(
                        "collections", "Unknown collection", provided_value=collection_id
                    )
                )

        price = None
        for field_name, raw in (("price", self.price_input), ("sale_price", self.sale_price_input)):
            try:
                normalized = normalize_price(raw, field_name)
            except ValidationFailure as e:
                errors.extend(e.field_errors)
                continue
            if field_name == "price":
                price = normalized
        if price is None and not any(e.field_name == "price" for e in errors):
            errors.append(FieldValidationError("price", "Price is required"))

        return errors

    def is_submittable(self) -> bool:
        return not self.validate()

    def to_draft(self, images: list[str]) -> ProductDraft:
        """Build the record payload from the current fields.

        Pending price entries are blurred, as leaving the field would.

        Raises:
            ValidationFailure: The form does not validate
        """
        errors = self.validate()
        if errors:
            raise ValidationFailure(
                "Invalid fields: " + ", ".join(e.field_name for e in errors),
                field_errors=errors,
            )
        self.blur_price()
        self.blur_sale_price()
        return ProductDraft(
            name=self.name.strip(),
            slug=self.slug.strip(),
            description=self.description.strip(),
            images=list(images),
            size=self.size.strip() or None,
            colors=list(self.colors),
            category=self.category,
            collections=list(self.collections),
            price=self.price,
            sale_price=self.sale_price,
            flags=self.flags.model_copy(),
        )


def _require_text(errors: list, field_name: str, value: str, max_length: int) -> None:
    if not value or not value.strip():
        errors.append(FieldValidationError(field_name, f"{field_name} is required", value))
        return
    _bound_text(errors, field_name, value, max_length)


def _bound_text(errors: list, field_name: str, value: str, max_length: int) -> None:
    if value and len(value.strip()) > max_length:
        errors.append(
            FieldValidationError(
                field_name,
                f"{field_name} must be at most {max_length} characters",
                value[:max_length],
            )
        )


def _clean_message(message: str) -> str:
    # pydantic prefixes custom validator messages
    return message.removeprefix("Value error, ")

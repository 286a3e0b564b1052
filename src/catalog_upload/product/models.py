"""Data models for the product draft and its record store payload."""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

HEX_COLOR_PATTERN = re.compile(r"^#([0-9A-F]{3}){1,2}$", re.IGNORECASE)

MAX_ACTIVE_FLAGS = 3


class ProductFlag(str, Enum):
    """Merchandising flags; values are the record store field names."""
    IS_ACTIVE = "isActive"
    IS_FAST_SELLING = "isFastSelling"
    IS_ON_SALE = "isOnSale"
    IS_NEW_ARRIVAL = "isNewArrival"
    IS_LIMITED_EDITION = "isLimitedEdition"


_FLAG_ATTRIBUTES = {
    ProductFlag.IS_ACTIVE: "is_active",
    ProductFlag.IS_FAST_SELLING: "is_fast_selling",
    ProductFlag.IS_ON_SALE: "is_on_sale",
    ProductFlag.IS_NEW_ARRIVAL: "is_new_arrival",
    ProductFlag.IS_LIMITED_EDITION: "is_limited_edition",
}


class Color(BaseModel):
    """A named display color."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Color name, e.g. Black")
    hex: str = Field(..., description="#RGB or #RRGGBB")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Please enter a color name.")
        return value

    @field_validator("hex")
    @classmethod
    def _valid_hex(cls, value: str) -> str:
        if not HEX_COLOR_PATTERN.fullmatch(value):
            raise ValueError("Enter a valid hex code (e.g., #000000 or #FFF)")
        return value


class FlagSet(BaseModel):
    """Product flags with at most MAX_ACTIVE_FLAGS set at once."""
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(default=False, alias="isActive")
    is_fast_selling: bool = Field(default=False, alias="isFastSelling")
    is_on_sale: bool = Field(default=False, alias="isOnSale")
    is_new_arrival: bool = Field(default=False, alias="isNewArrival")
    is_limited_edition: bool = Field(default=False, alias="isLimitedEdition")

    @model_validator(mode="after")
    def _check_ceiling(self) -> "FlagSet":
        if len(self.active()) > MAX_ACTIVE_FLAGS:
            raise ValueError(f"At most {MAX_ACTIVE_FLAGS} flags may be set")
        return self

    def is_set(self, flag: ProductFlag) -> bool:
        return getattr(self, _FLAG_ATTRIBUTES[flag])

    def active(self) -> list[ProductFlag]:
        return [flag for flag in ProductFlag if self.is_set(flag)]

    def toggle(self, flag: ProductFlag) -> bool:
        """Flip one flag.

        Turning a flag on when MAX_ACTIVE_FLAGS are already set is refused
        and leaves the set unchanged.

        Returns:
            True if the flag was flipped, False if the toggle was rejected.
        """
        flag = ProductFlag(flag)
        current = self.is_set(flag)
        if not current and len(self.active()) >= MAX_ACTIVE_FLAGS:
            return False
        setattr(self, _FLAG_ATTRIBUTES[flag], not current)
        return True

    def clear(self) -> None:
        for attribute in _FLAG_ATTRIBUTES.values():
            setattr(self, attribute, False)


class ReferenceItem(BaseModel):
    """A category or collection offered by the reference data source."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str


class ProductDraft(BaseModel):
    """Finished draft, shaped like the record store payload."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    description: str = ""
    images: list[str] = Field(..., min_length=1)
    size: Optional[str] = None
    colors: list[Color] = Field(default_factory=list)
    category: str
    collections: list[str] = Field(default_factory=list)
    price: Optional[float] = None
    sale_price: Optional[float] = Field(default=None, alias="salePrice")
    flags: FlagSet = Field(default_factory=FlagSet)

    def to_payload(self) -> dict[str, Any]:
        """Serialize with record store field names (``salePrice``, ``isActive``...)."""
        return self.model_dump(mode="json", by_alias=True)

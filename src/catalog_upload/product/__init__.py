"""Product draft: form fields, reference data and record payload models."""

from catalog_upload.product.models import (
    HEX_COLOR_PATTERN,
    MAX_ACTIVE_FLAGS,
    Color,
    FlagSet,
    ProductDraft,
    ProductFlag,
    ReferenceItem,
)
from catalog_upload.product.reference import (
    HttpReferenceSource,
    ReferenceCatalog,
    ReferenceSource,
    StaticReferenceSource,
)
from catalog_upload.product.form import (
    FieldValidationError,
    ProductForm,
    normalize_price,
)

__all__ = [
    # Models
    "HEX_COLOR_PATTERN",
    "MAX_ACTIVE_FLAGS",
    "Color",
    "FlagSet",
    "ProductDraft",
    "ProductFlag",
    "ReferenceItem",
    # Reference data
    "HttpReferenceSource",
    "ReferenceCatalog",
    "ReferenceSource",
    "StaticReferenceSource",
    # Form
    "FieldValidationError",
    "ProductForm",
    "normalize_price",
]

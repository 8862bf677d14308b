"""Canonical product shapes shared by the catalog, the chat stream and storage."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Price(CamelModel):
    amount: float
    currency_code: str = "USD"


class ProductVariant(CamelModel):
    id: str
    title: str
    price: Optional[str] = None
    available_for_sale: bool = True


class ProductResult(CamelModel):
    """Normalized product as shown on a product card."""

    id: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[Price] = None
    variants: Optional[list[ProductVariant]] = None
    variant_id: Optional[str] = None
    overlay_asset_url: Optional[str] = None
    handle: Optional[str] = None
    url: Optional[str] = None


class ToolError(BaseModel):
    """Failure returned by the catalog search tool instead of raising."""

    message: str

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message}

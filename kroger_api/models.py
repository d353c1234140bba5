"""Validated shapes for Kroger catalog payloads."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductPrice(BaseModel):
    regular: float = Field(gt=0)
    promo: Optional[float] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("promo", mode="before")
    @classmethod
    def _zero_promo_is_none(cls, v):
        # The API reports "no promotion" as 0.
        if v in (None, "", 0, 0.0, "0"):
            return None
        return v


class ProductItem(BaseModel):
    itemId: Optional[str] = None
    price: Optional[ProductPrice] = None
    size: Optional[str] = None
    soldBy: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ImageSize(BaseModel):
    size: Optional[str] = None
    url: str


class ProductImage(BaseModel):
    perspective: Optional[str] = None
    featured: Optional[bool] = None
    sizes: List[ImageSize] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class KrogerProduct(BaseModel):
    productId: str = Field(min_length=1)
    upc: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    images: List[ProductImage] = Field(default_factory=list)
    items: List[ProductItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def primary_price(self) -> Optional[ProductPrice]:
        if not self.items:
            return None
        return self.items[0].price

    @property
    def resolved_price(self) -> Optional[float]:
        """Promotional price when one is running, otherwise the regular price."""
        price = self.primary_price
        if price is None:
            return None
        return price.promo or price.regular

    @property
    def size(self) -> Optional[str]:
        if not self.items:
            return None
        return self.items[0].size

    @property
    def image_url(self) -> Optional[str]:
        if not self.images or not self.images[0].sizes:
            return None
        return self.images[0].sizes[0].url

    @property
    def match_text(self) -> str:
        return self.description or self.productId


class StoreAddress(BaseModel):
    addressLine1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None


class Geolocation(BaseModel):
    latitude: float
    longitude: float


class KrogerStore(BaseModel):
    locationId: str = Field(min_length=1)
    name: Optional[str] = None
    address: Optional[StoreAddress] = None
    geolocation: Optional[Geolocation] = None

    model_config = ConfigDict(extra="ignore")

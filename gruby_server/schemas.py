from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Enrichment fields that must appear together once an ingredient is synced.
ENRICHMENT_REQUIRED_FIELDS = (
    "krogerProductId",
    "krogerPrice",
    "krogerRegularPrice",
    "confidenceScore",
    "lastUpdated",
)
ENRICHMENT_OPTIONAL_FIELDS = ("krogerPromoPrice", "krogerImageUrl", "krogerSize")


class IngredientEnrichment(BaseModel):
    krogerProductId: str
    krogerPrice: float = Field(gt=0)
    krogerRegularPrice: float = Field(gt=0)
    krogerPromoPrice: Optional[float] = None
    krogerImageUrl: Optional[str] = None
    krogerSize: Optional[str] = None
    confidenceScore: float = Field(ge=0, le=1)
    lastUpdated: datetime

    def as_document(self) -> Dict[str, object]:
        doc = self.model_dump()
        doc["lastUpdated"] = self.lastUpdated.isoformat()
        return doc


class Ingredient(BaseModel):
    """An ingredient entry as stored on a recipe document.

    Unknown keys (quantity, unit, notes, ...) are kept so rewriting a recipe
    never loses user data.
    """

    name: Optional[str] = None
    krogerProductId: Optional[str] = None
    krogerPrice: Optional[float] = None
    krogerRegularPrice: Optional[float] = None
    krogerPromoPrice: Optional[float] = None
    krogerImageUrl: Optional[str] = None
    krogerSize: Optional[str] = None
    confidenceScore: Optional[float] = Field(default=None, ge=0, le=1)
    lastUpdated: Optional[datetime] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="after")
    def _enrichment_all_or_nothing(self) -> "Ingredient":
        present = [f for f in ENRICHMENT_REQUIRED_FIELDS if getattr(self, f) is not None]
        if present and len(present) != len(ENRICHMENT_REQUIRED_FIELDS):
            missing = sorted(set(ENRICHMENT_REQUIRED_FIELDS) - set(present))
            raise ValueError(f"partial product enrichment; missing {', '.join(missing)}")
        if not present and any(getattr(self, f) is not None for f in ENRICHMENT_OPTIONAL_FIELDS):
            raise ValueError("product enrichment fields present without a matched product")
        return self

    @property
    def is_synced(self) -> bool:
        return self.krogerProductId is not None

    @property
    def clean_name(self) -> str:
        return (self.name or "").strip()


class SyncRequest(BaseModel):
    recipeIds: Optional[List[str]] = None
    locationId: Optional[str] = Field(default=None, max_length=32)
    limit: Optional[int] = Field(default=None, ge=1)
    force: bool = False

    model_config = ConfigDict(extra="ignore")


class SyncResult(BaseModel):
    success: bool
    message: str
    recipesProcessed: int = 0
    productsUpdated: int = 0
    productsSkipped: int = 0
    cacheHits: int = 0
    errors: List[str] = Field(default_factory=list)
    timestamp: str
    triggeredBy: Optional[str] = None
    durationMs: Optional[int] = None


class SyncRunRecord(SyncResult):
    id: int
    createdAt: datetime


class SyncHistoryResponse(BaseModel):
    success: bool = True
    history: List[SyncRunRecord]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    retryAfter: Optional[int] = None


class PriceLookupRequest(BaseModel):
    ingredients: List[str] = Field(max_length=50)
    storeId: Optional[str] = Field(default=None, max_length=32)


class FoundProduct(BaseModel):
    name: Optional[str] = None
    price: float
    promoPrice: Optional[float] = None
    brand: Optional[str] = None


class PriceLookupResponse(BaseModel):
    success: bool = True
    prices: Dict[str, Optional[float]]
    foundProducts: Dict[str, FoundProduct]
    total: float
    foundPrices: int
    totalIngredients: int
    ingredientPrices: Dict[str, float]


class DeliveryCost(BaseModel):
    price: float
    fees: float
    tip: float
    total: float


class HomeCookedCost(BaseModel):
    ingredients: List[str]
    price: float
    servings: int
    perServing: float
    estimated: bool = False


class MealComparison(BaseModel):
    meal: str
    image: Optional[str] = None
    delivery: DeliveryCost
    homeCooked: HomeCookedCost
    savings: float
    savingsPercent: int


class ComparisonResponse(BaseModel):
    comparisons: List[MealComparison]

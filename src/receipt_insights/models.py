"""
Data models using Pydantic for receipt analysis and spending analytics.
Provides validation and type checking for receipt data.

Attributes are snake_case in Python; serialized field names are camelCase
(``model_dump(by_alias=True)``) and both forms are accepted on input.
"""

from decimal import Decimal
from typing import Optional, List, Dict, FrozenSet

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def normalize_categories(value) -> FrozenSet[str]:
    """Strip category labels and drop empty ones. Duplicates collapse case-sensitively."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    return frozenset(label.strip() for label in value if label and label.strip())


class ReceiptCreate(BaseModel):
    """Model for creating new receipts. Built once the image analysis succeeded."""

    model_config = ConfigDict(frozen=True, **_MODEL_CONFIG)

    user_id: str = Field(..., min_length=1, description="Owning user identifier")
    timestamp: int = Field(..., description="Purchase time in epoch milliseconds (UTC)")
    image_ref: str = Field(..., description="Reference/URL to the stored image")
    price: Decimal = Field(..., description="Receipt total")
    store: str = Field("", description="Store name, empty if unknown")
    categories: FrozenSet[str] = Field(default_factory=frozenset, description="Category labels")
    raw_text: str = Field("", description="Full OCR transcript")
    label: Optional[str] = Field(None, max_length=500, description="User supplied note")

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        if v <= 0:
            raise ValueError('Timestamp must be positive')
        return v

    @field_validator('price')
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError('Price cannot be negative')
        return v

    @field_validator('store')
    @classmethod
    def validate_store(cls, v):
        return v.strip() if v else ""

    @field_validator('categories', mode='before')
    @classmethod
    def validate_categories(cls, v):
        return normalize_categories(v)

    @property
    def store_key(self) -> str:
        """Lower-cased store name used for case-insensitive matching."""
        return self.store.lower()


class Receipt(ReceiptCreate):
    """A persisted receipt record."""

    id: int = Field(..., description="Identifier assigned by the store")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "userId": "123",
                "timestamp": 1560193140000,
                "imageRef": "/serve-image?blob-key=3f2a",
                "price": "14.51",
                "store": "Contoso",
                "categories": ["cappuccino", "food"],
                "rawText": "CONTOSO\nCAPPUCCINO 4.25\n...",
                "label": "Lunch with the team",
            }
        },
        **_MODEL_CONFIG,
    )


class ReceiptFields(BaseModel):
    """Structured values derived from (or confirmed for) a receipt's raw text."""

    model_config = _MODEL_CONFIG

    price: Decimal = Field(Decimal("0"), ge=0)
    store: str = ""
    categories: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator('categories', mode='before')
    @classmethod
    def validate_categories(cls, v):
        return normalize_categories(v)


class AnalysisResult(BaseModel):
    """Raw text extracted from a receipt image."""

    model_config = _MODEL_CONFIG

    raw_text: str


class SearchCriteria(BaseModel):
    """Normalized search filter plus pagination state."""

    model_config = _MODEL_CONFIG

    time_zone_id: str = "UTC"
    categories: Optional[FrozenSet[str]] = None
    start_timestamp: Optional[int] = Field(None, description="Inclusive lower bound, epoch ms")
    end_timestamp: Optional[int] = Field(None, description="Exclusive upper bound, epoch ms")
    store: Optional[str] = Field(None, description="Lower-cased store name")
    min_price: Decimal = Decimal("0")
    max_price: Optional[Decimal] = None
    is_new_search: bool = False
    is_page_load: bool = False
    page_token: Optional[str] = None

    @property
    def starts_over(self) -> bool:
        return self.is_new_search or self.is_page_load or not self.page_token

    def matches(self, receipt: ReceiptCreate) -> bool:
        """Return True if the receipt satisfies every set predicate."""
        if self.start_timestamp is not None and receipt.timestamp < self.start_timestamp:
            return False
        if self.end_timestamp is not None and receipt.timestamp >= self.end_timestamp:
            return False
        if self.store is not None and receipt.store_key != self.store:
            return False
        if self.categories and not self.categories <= receipt.categories:
            return False
        if receipt.price < self.min_price:
            return False
        if self.max_price is not None and receipt.price > self.max_price:
            return False
        return True


class SearchPage(BaseModel):
    """One page of search results."""

    model_config = _MODEL_CONFIG

    receipts: List[Receipt] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class SpendingAnalytics(BaseModel):
    """Spending totals per store and per category."""

    model_config = _MODEL_CONFIG

    store_totals: Dict[str, Decimal] = Field(default_factory=dict)
    category_totals: Dict[str, Decimal] = Field(default_factory=dict)


class UploadResult(BaseModel):
    """Outcome of analyzing and recording one uploaded receipt."""

    model_config = _MODEL_CONFIG

    success: bool = Field(..., description="Whether the receipt was recorded")
    receipt: Optional[Receipt] = Field(None, description="The stored receipt")
    errors: List[str] = Field(default_factory=list, description="Processing errors")
    processing_time: Optional[float] = Field(None, description="Processing time in seconds")


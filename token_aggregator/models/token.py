"""
Models for merged token market data.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

SortField = Literal["volume", "price_change", "market_cap", "liquidity"]
SortOrder = Literal["asc", "desc"]

DEFAULT_PAGE_LIMIT = 20


class Token(BaseModel):
    """Canonical token record, unique by address within any collection."""
    address: str
    name: str
    ticker: str
    price_in_base_unit: float = Field(0.0, ge=0, description="Price in SOL")
    market_cap_in_base_unit: float = Field(0.0, ge=0)
    volume_in_base_unit: float = Field(0.0, ge=0, description="24h volume in SOL")
    liquidity_in_base_unit: float = Field(0.0, ge=0)
    transaction_count: int = Field(0, ge=0, description="24h buys + sells")
    price_change_1h_pct: float = 0.0
    protocol: str = ""
    source: Optional[str] = Field(None, description="Provider that produced the record")
    updated_at: Optional[int] = Field(None, description="Epoch milliseconds")


class TokenFilter(BaseModel):
    """Request-scoped sort and pagination options."""
    model_config = ConfigDict(populate_by_name=True)

    sort_by: Optional[SortField] = Field(None, alias="sortBy")
    sort_order: Optional[SortOrder] = Field(None, alias="sortOrder")
    limit: PositiveInt = DEFAULT_PAGE_LIMIT
    cursor: Optional[str] = None


class PaginatedResponse(BaseModel):
    """One page of a filtered and sorted token collection."""
    data: List[Token]
    next_cursor: Optional[str] = None
    has_more: bool
    total: int

"""
Token listing, lookup and refresh endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..dependencies import get_aggregation_service
from ..models.token import DEFAULT_PAGE_LIMIT, SortField, SortOrder, TokenFilter
from ..services.aggregation_service import AggregationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["Tokens"])


def _failure(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.get("")
async def list_tokens(
    sort_by: Optional[SortField] = Query(default=None, alias="sortBy", description="Field to sort by"),
    sort_order: Optional[SortOrder] = Query(default=None, alias="sortOrder", description="asc or desc (default)"),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, description="Page size"),
    cursor: Optional[str] = Query(default=None, description="Offset cursor from a previous page"),
    aggregation: AggregationService = Depends(get_aggregation_service),
):
    """
    Get one page of merged tokens.
    Supports sorting by volume, price_change, market_cap or liquidity.
    """
    token_filter = TokenFilter(sort_by=sort_by, sort_order=sort_order, limit=limit, cursor=cursor)
    try:
        page = await aggregation.get_tokens(token_filter)
    except Exception as e:
        logger.error(f"Error fetching tokens: {str(e)}")
        logger.exception(e)
        return _failure("Failed to fetch tokens")

    body = {"success": True, **page.model_dump(mode="json")}
    if body["next_cursor"] is None:
        del body["next_cursor"]
    return body


@router.post("/refresh")
async def refresh_tokens(aggregation: AggregationService = Depends(get_aggregation_service)):
    """Force a full re-fetch from every provider."""
    try:
        tokens = await aggregation.refresh_cache()
    except Exception as e:
        logger.error(f"Error refreshing cache: {str(e)}")
        logger.exception(e)
        return _failure("Failed to refresh cache")

    return {"success": True, "message": f"Cache refreshed with {len(tokens)} tokens"}


@router.get("/{address}")
async def get_token(address: str, aggregation: AggregationService = Depends(get_aggregation_service)):
    """Get a single token by address."""
    try:
        token = await aggregation.get_token_by_address(address)
    except Exception as e:
        logger.error(f"Error fetching token {address}: {str(e)}")
        logger.exception(e)
        return _failure("Failed to fetch token")

    if token is None:
        return _failure("Token not found", status_code=404)

    return {"success": True, "data": token.model_dump(mode="json")}

"""Shared pagination schema for list endpoints."""

from pydantic import BaseModel


class PaginatedResponse(BaseModel):
    """Standard paginated response: items + total + page info."""

    items: list
    total: int
    page: int
    per_page: int
    has_more: bool

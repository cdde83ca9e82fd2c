"""AI suggestions API: create, list, get, events, accept, reject, regenerate."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user_id, get_suggestion_lifecycle
from app.api.v1.presenters import event_to_response, suggestion_to_response, workout_to_response
from app.models.ai_suggestion import SuggestionStatus
from app.schemas.pagination import PaginatedResponse
from app.schemas.suggestion import (
    SuggestionAccept,
    SuggestionAcceptResponse,
    SuggestionCreate,
    SuggestionDetailResponse,
    SuggestionRegenerate,
)
from app.services.suggestion_lifecycle import SuggestionLifecycle

router = APIRouter(prefix="/ai/suggestions", tags=["ai-suggestions"])

UserId = Annotated[int, Depends(get_current_user_id)]
Lifecycle = Annotated[SuggestionLifecycle, Depends(get_suggestion_lifecycle)]


@router.post("", response_model=SuggestionDetailResponse, status_code=201, summary="Generate AI suggestion")
async def create_suggestion(body: SuggestionCreate, user_id: UserId, lifecycle: Lifecycle) -> SuggestionDetailResponse:
    suggestion = await lifecycle.create(user_id, body.training_type_code, body.planned_date, body.context)
    return SuggestionDetailResponse(suggestion=suggestion_to_response(suggestion, lifecycle), events=[])


@router.get("", response_model=PaginatedResponse, summary="List AI suggestions")
async def list_suggestions(
    user_id: UserId,
    lifecycle: Lifecycle,
    status: SuggestionStatus | None = None,
    created_after: date | None = None,
    created_before: date | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    sort: str = Query(default="created_at:desc", pattern=r"^(created_at|status|planned_date)(:(asc|desc))?$"),
) -> PaginatedResponse:
    result = await lifecycle.list_suggestions(
        user_id,
        status=status,
        created_after=created_after,
        created_before=created_before,
        page=page,
        per_page=per_page,
        sort=sort,
    )
    return PaginatedResponse(
        items=[suggestion_to_response(s, lifecycle) for s in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        has_more=result.has_more,
    )


@router.get("/{suggestion_id}", response_model=SuggestionDetailResponse, summary="Get AI suggestion")
async def get_suggestion(
    suggestion_id: int,
    user_id: UserId,
    lifecycle: Lifecycle,
    include_expired: bool = False,
) -> SuggestionDetailResponse:
    result = await lifecycle.get(user_id, suggestion_id, include_expired=include_expired)
    return SuggestionDetailResponse(
        suggestion=suggestion_to_response(result.suggestion, lifecycle),
        events=[event_to_response(e) for e in result.events],
    )


@router.get("/{suggestion_id}/events", response_model=PaginatedResponse, summary="List AI suggestion events")
async def list_suggestion_events(
    suggestion_id: int,
    user_id: UserId,
    lifecycle: Lifecycle,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
) -> PaginatedResponse:
    result = await lifecycle.list_events(user_id, suggestion_id, page=page, per_page=per_page)
    return PaginatedResponse(
        items=[event_to_response(e) for e in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        has_more=result.has_more,
    )


@router.post("/{suggestion_id}/accept", response_model=SuggestionAcceptResponse, summary="Accept AI suggestion")
async def accept_suggestion(
    suggestion_id: int, body: SuggestionAccept, user_id: UserId, lifecycle: Lifecycle
) -> SuggestionAcceptResponse:
    result = await lifecycle.accept(user_id, suggestion_id, body.position)
    return SuggestionAcceptResponse(
        suggestion=suggestion_to_response(result.suggestion, lifecycle),
        workout=workout_to_response(result.workout),
    )


@router.post("/{suggestion_id}/reject", response_model=SuggestionDetailResponse, summary="Reject AI suggestion")
async def reject_suggestion(suggestion_id: int, user_id: UserId, lifecycle: Lifecycle) -> SuggestionDetailResponse:
    await lifecycle.reject(user_id, suggestion_id)
    # Rejected rows still carry their history (e.g. an earlier regenerate)
    result = await lifecycle.get(user_id, suggestion_id, include_expired=True)
    return SuggestionDetailResponse(
        suggestion=suggestion_to_response(result.suggestion, lifecycle),
        events=[event_to_response(e) for e in result.events],
    )


@router.post(
    "/{suggestion_id}/regenerate",
    response_model=SuggestionDetailResponse,
    status_code=201,
    summary="Regenerate AI suggestion",
)
async def regenerate_suggestion(
    suggestion_id: int, body: SuggestionRegenerate, user_id: UserId, lifecycle: Lifecycle
) -> SuggestionDetailResponse:
    suggestion = await lifecycle.regenerate(user_id, suggestion_id, body.reason, body.adjustment_hint)
    return SuggestionDetailResponse(suggestion=suggestion_to_response(suggestion, lifecycle))

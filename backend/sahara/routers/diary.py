# diary router - entry crud, insights, analytics and writing prompts
# every route is scoped to the token subject; analysis runs on the queue, never inline

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from sahara.dependencies import get_current_user, get_services
from sahara.models.analytics import PeriodInsights, PeriodStats, ProcessPendingResponse, QueueStats, UserAnalytics
from sahara.models.entry import (
    EntryCreate,
    EntryDeleteResponse,
    EntryMetadata,
    EntryResponse,
    EntryUpdate,
    SearchResponse,
)
from sahara.models.insight import InsightResponse, WritingPromptsResponse
from sahara.services.container import Services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/diary", tags=["diary"])


def _insight_response(doc: dict) -> InsightResponse:
    return InsightResponse(
        id=doc["insight_id"],
        entry_id=doc["entry_id"],
        created_at=doc.get("created_at", ""),
        sentiment=doc.get("sentiment", {}),
        emotions=doc.get("emotions", []),
        entities=doc.get("entities", []),
        themes=doc.get("themes", []),
        triggers=doc.get("triggers", []),
        coping_strategies=doc.get("coping_strategies", []),
    )


def _entry_response(doc: dict, insights: Optional[list[dict]] = None) -> EntryResponse:
    return EntryResponse(
        id=doc["entry_id"],
        owner_id=doc["owner_id"],
        kind=doc.get("kind", "diary"),
        content=doc["content"],
        mood=doc.get("mood"),
        tags=doc.get("tags", []),
        created_at=doc["created_at"],
        updated_at=doc.get("updated_at", doc["created_at"]),
        processed=doc.get("processed", False),
        analysis_status=doc.get("analysis_status", "unprocessed"),
        metadata=EntryMetadata(**doc.get("metadata", {})),
        insights=[_insight_response(i) for i in insights] if insights is not None else None,
    )


# entries

@router.post("/entries", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: EntryCreate,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """create a diary entry and queue it for analysis"""
    entry = await services.store.create(
        current_user["id"], body.content, body.tags, mood=body.mood,
    )
    services.pipeline.schedule(entry["entry_id"], entry["content"])
    return _entry_response(entry)


@router.get("/entries", response_model=list[EntryResponse])
async def list_entries(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: Optional[int] = Query(None, ge=1, le=200),
    include_insights: bool = Query(False, alias="includeInsights"),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """the caller's entries, newest first"""
    entries = await services.store.list_entries(
        current_user["id"], start_date=start_date, end_date=end_date, limit=limit,
    )
    if not include_insights:
        return [_entry_response(e) for e in entries]

    insights = await services.store.insights_for_entries([e["entry_id"] for e in entries])
    by_entry: dict[str, list[dict]] = {}
    for insight in insights:
        by_entry.setdefault(insight["entry_id"], []).append(insight)
    return [_entry_response(e, by_entry.get(e["entry_id"], [])) for e in entries]


@router.get("/entries/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: str,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    entry = await services.store.get_by_id(entry_id, current_user["id"])
    insights = await services.store.get_insights(entry_id)
    return _entry_response(entry, insights)


@router.put("/entries/{entry_id}", response_model=EntryResponse)
async def update_entry(
    entry_id: str,
    body: EntryUpdate,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """update content, mood or tags. changed content is re-analysed."""
    fields = body.model_dump(exclude_unset=True)
    entry = await services.store.update(entry_id, current_user["id"], fields)
    if not entry.get("processed") and entry.get("analysis_status") == "unprocessed":
        services.pipeline.schedule(entry_id, entry["content"])
    return _entry_response(entry)


@router.delete("/entries/{entry_id}", response_model=EntryDeleteResponse)
async def delete_entry(
    entry_id: str,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    await services.store.delete(entry_id, current_user["id"])
    return EntryDeleteResponse(id=entry_id)


@router.get("/insights/{entry_id}", response_model=list[InsightResponse])
async def get_entry_insights(
    entry_id: str,
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """insight history of one entry, oldest first"""
    await services.store.get_by_id(entry_id, current_user["id"])
    insights = await services.store.get_insights(entry_id)
    return [_insight_response(i) for i in insights]


@router.get("/search", response_model=SearchResponse)
async def search_entries(
    query: str = Query(..., min_length=1),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    entries = await services.store.search(
        current_user["id"], query, start_date=start_date, end_date=end_date, limit=limit,
    )
    return SearchResponse(query=query, count=len(entries), entries=[_entry_response(e) for e in entries])


# analytics

@router.get("/analytics", response_model=UserAnalytics)
async def get_analytics(
    days: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """writing stats and emotional insights over the last `days` days"""
    analytics = await services.aggregator.user_analytics(current_user["id"], days)
    return UserAnalytics(**analytics)


@router.get("/emotional-insights", response_model=PeriodInsights)
async def get_emotional_insights(
    days: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    insights = await services.aggregator.aggregate_insights(current_user["id"], days)
    return PeriodInsights(**insights, period=f"{days} days")


@router.get("/stats", response_model=PeriodStats)
async def get_stats(
    days: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    stats = await services.aggregator.compute_stats(current_user["id"], days)
    return PeriodStats(**stats, period=f"{days} days")


@router.get("/prompts", response_model=WritingPromptsResponse)
async def get_writing_prompts(
    count: int = Query(3, ge=1, le=10),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """personalised journaling prompts"""
    result = await services.pipeline.writing_prompts(current_user["id"], count)
    return WritingPromptsResponse(**result)


# analysis

@router.post("/process-pending", response_model=ProcessPendingResponse)
async def process_pending(
    limit: int = Query(5, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """queue a batch of unprocessed entries for analysis; does not wait for results"""
    submitted = await services.pipeline.process_pending(limit)
    logger.info(f"Process pending requested by {current_user['id']}: {submitted} queued")
    return ProcessPendingResponse(
        submitted=submitted,
        message=f"Queued {submitted} entries for analysis",
        queue=QueueStats(**services.pipeline.queue.stats()),
    )

"""
Roadmap API Routes
Orchestrates query building -> search -> transform -> storage
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import List, Optional

from app.schemas.roadmap import (
    GenerateRoadmapResponse,
    LearnerProfile,
    RoadmapListItem,
    SearchResult,
    StoredRoadmap,
)
from app.services.exceptions import InvalidInputError
from app.services.roadmap_pipeline import RoadmapPipeline
from app.services.roadmap_store import RoadmapStore
from app.services.search_client import GoogleSearchClient
from app.utils.metrics import track_duration


router = APIRouter(prefix="/api", tags=["roadmap"])
limiter = Limiter(key_func=get_remote_address)


def get_search_client() -> GoogleSearchClient:
    return GoogleSearchClient()


def get_roadmap_store() -> RoadmapStore:
    return RoadmapStore()


def get_pipeline(
    search_client: GoogleSearchClient = Depends(get_search_client),
    store: RoadmapStore = Depends(get_roadmap_store),
) -> RoadmapPipeline:
    return RoadmapPipeline(search_client=search_client, store=store)


async def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity for ownership of stored roadmaps. Anonymous when absent."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


@router.post("/roadmap", response_model=GenerateRoadmapResponse, response_model_by_alias=True)
@limiter.limit("20/minute")
async def generate_roadmap(
    request: Request,
    profile: LearnerProfile,
    pipeline: RoadmapPipeline = Depends(get_pipeline),
    user_id: Optional[str] = Depends(get_user_id),
) -> GenerateRoadmapResponse:
    """
    Generate, store and return a roadmap for the submitted profile.

    The response is only sent once the roadmap has been saved. Failures come
    back as {"error": kind, "detail": message} (see app.main).
    """
    async with track_duration("pipeline", "generate"):
        generated = await pipeline.generate(profile, user_id=user_id)

    return GenerateRoadmapResponse(
        roadmap_id=generated.roadmap_id,
        created_at=generated.created_at,
        steps=generated.steps,
    )


@router.get("/roadmap/search", response_model=List[SearchResult])
@limiter.limit("30/minute")
async def search_resources(
    request: Request,
    q: Optional[str] = Query(None),
    search_client: GoogleSearchClient = Depends(get_search_client),
) -> List[SearchResult]:
    """Raw search results for a query, without building or storing a roadmap."""
    if not q or not q.strip():
        raise InvalidInputError("Search query is required")
    return await search_client.search(q)


@router.get("/roadmaps", response_model=List[RoadmapListItem], response_model_by_alias=True)
async def list_roadmaps(
    limit: int = Query(20, ge=1, le=100),
    store: RoadmapStore = Depends(get_roadmap_store),
    user_id: Optional[str] = Depends(get_user_id),
) -> List[RoadmapListItem]:
    """List the caller's saved roadmaps, newest first"""
    return await store.list_recent(user_id=user_id, limit=limit)


@router.get("/roadmaps/{roadmap_id}", response_model=StoredRoadmap, response_model_by_alias=True)
async def get_roadmap(
    roadmap_id: int,
    store: RoadmapStore = Depends(get_roadmap_store),
    user_id: Optional[str] = Depends(get_user_id),
) -> StoredRoadmap:
    """Retrieve a previously generated roadmap"""
    stored = await store.get(roadmap_id, user_id=user_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Roadmap not found")
    return stored

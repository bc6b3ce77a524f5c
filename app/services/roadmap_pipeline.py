"""
Roadmap generation pipeline.

    IDLE → VALIDATING → SEARCHING → TRANSFORMING → PERSISTING → SUCCEEDED
                │            │                          │
                └────────────┴──────────► FAILED(kind) ◄┘

Two-phase contract: the roadmap is computed in full, committed to the store,
and only then released to the caller. If the commit fails the caller gets a
PersistenceError and never sees the steps.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol

from app.schemas.roadmap import LearnerProfile, RoadmapRecord, RoadmapStep, SearchResult
from app.services.exceptions import (
    FailureKind,
    InvalidInputError,
    NoResultsError,
    PersistenceError,
    RoadmapGenerationError,
    UpstreamError,
)
from app.services.query_builder import build_search_query
from app.services.roadmap_transformer import build_roadmap
from app.utils.logger import logger
from app.utils.metrics import inc


class PipelineState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SEARCHING = "searching"
    TRANSFORMING = "transforming"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SearchProvider(Protocol):
    async def search(self, query: str) -> List[SearchResult]: ...


class RoadmapWriter(Protocol):
    async def save(self, record: RoadmapRecord, user_id: Optional[str] = None) -> int: ...


@dataclass(frozen=True)
class GeneratedRoadmap:
    """What the caller receives once the record is durably stored."""
    roadmap_id: int
    created_at: datetime
    steps: List[RoadmapStep]


@dataclass
class PipelineRun:
    """Per-request state; never shared between requests."""
    state: PipelineState = PipelineState.IDLE
    failure: Optional[FailureKind] = None
    history: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])

    def advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("pipeline.transition", extra={"state": state.value})

    def fail(self, kind: FailureKind) -> None:
        self.failure = kind
        self.advance(PipelineState.FAILED)


class RoadmapPipeline:
    def __init__(self, search_client: SearchProvider, store: RoadmapWriter):
        self.search_client = search_client
        self.store = store

    async def generate(
        self,
        profile: LearnerProfile,
        user_id: Optional[str] = None,
        run: Optional[PipelineRun] = None,
    ) -> GeneratedRoadmap:
        """
        Run one generation request end to end.

        Raises InvalidInputError, NoResultsError, UpstreamError or
        PersistenceError. Pass `run` to observe the state transitions.
        """
        run = run or PipelineRun()
        try:
            result = await self._generate(profile, user_id, run)
        except RoadmapGenerationError as e:
            run.fail(e.kind)
            inc(f"pipeline.failed.{e.kind.value}")
            logger.warning(
                "pipeline.failed",
                extra={"error_kind": e.kind.value, "error": e.message, "user_id": user_id},
            )
            raise
        inc("pipeline.succeeded")
        return result

    async def _generate(self, profile: LearnerProfile, user_id: Optional[str], run: PipelineRun) -> GeneratedRoadmap:
        run.advance(PipelineState.VALIDATING)
        query = build_search_query(profile)
        if not query:
            raise InvalidInputError("Provide at least one of job profile, qualification, skills or interests")

        run.advance(PipelineState.SEARCHING)
        try:
            results = await self.search_client.search(query)
        except RoadmapGenerationError:
            raise
        except Exception as e:
            raise UpstreamError(f"Search failed: {e}") from e
        if not results:
            raise NoResultsError("No resources found. Please refine your inputs.")
        logger.info("pipeline.searched", extra={"query": query, "result_count": len(results)})

        # Phase 1: compute the whole roadmap in memory
        run.advance(PipelineState.TRANSFORMING)
        steps = build_roadmap(results, profile.time_commitment)
        record = RoadmapRecord(profile=profile, steps=steps)

        # Phase 2: commit; a failure here discards the roadmap
        run.advance(PipelineState.PERSISTING)
        try:
            roadmap_id = await self.store.save(record, user_id=user_id)
        except RoadmapGenerationError:
            raise
        except Exception as e:
            raise PersistenceError(f"Saving roadmap failed: {e}") from e

        # Phase 3: release
        run.advance(PipelineState.SUCCEEDED)
        logger.info(
            "pipeline.succeeded",
            extra={"record_id": roadmap_id, "step_count": len(steps), "user_id": user_id},
        )
        return GeneratedRoadmap(roadmap_id=roadmap_id, created_at=record.created_at, steps=list(record.steps))

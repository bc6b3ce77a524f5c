"""
Roadmap store: durable, append-only record of generated roadmaps.

A save is one INSERT committed in one transaction: either the whole record
(profile + every step) is stored, or nothing is and PersistenceError is raised.

Usage:
    store = RoadmapStore()
    roadmap_id = await store.save(record, user_id="abc")
    stored = await store.get(roadmap_id, user_id="abc")
"""
import asyncio
from typing import Any, Callable, Coroutine, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user_roadmap import UserRoadmap
from app.schemas.roadmap import LearnerProfile, RoadmapListItem, RoadmapRecord, RoadmapStep, StoredRoadmap
from app.services.exceptions import PersistenceError
from app.services.gateway import CircuitOpenError, ServiceGateway, get_gateway
from app.utils.logger import logger


class RoadmapStore:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        gateway: Optional[ServiceGateway] = None,
    ):
        if session_factory is None:
            from app.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory
        self._gateway = gateway

    @property
    def gateway(self) -> ServiceGateway:
        return self._gateway or get_gateway()

    async def save(self, record: RoadmapRecord, user_id: Optional[str] = None) -> int:
        """Insert the record and commit. Returns the new row id."""

        async def _insert(session: AsyncSession) -> int:
            row = UserRoadmap(
                session_user_id=user_id or None,
                user_input=record.profile.model_dump(by_alias=True),
                roadmap=[step.model_dump(by_alias=True) for step in record.steps],
                timestamp=record.created_at,
            )
            session.add(row)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return row.id

        roadmap_id = await self._run("save", _insert)
        logger.info(
            "roadmap.saved",
            extra={"record_id": roadmap_id, "user_id": user_id, "step_count": len(record.steps)},
        )
        return roadmap_id

    async def get(self, roadmap_id: int, user_id: Optional[str] = None) -> Optional[StoredRoadmap]:
        """Fetch one roadmap owned by `user_id` (anonymous rows when user_id is None)."""

        async def _select(session: AsyncSession) -> Optional[UserRoadmap]:
            result = await session.execute(
                select(UserRoadmap).where(
                    UserRoadmap.id == roadmap_id,
                    _owner_clause(user_id),
                )
            )
            return result.scalar_one_or_none()

        row = await self._run("get", _select)
        if row is None:
            return None
        return StoredRoadmap(
            roadmap_id=row.id,
            created_at=row.timestamp,
            profile=LearnerProfile.model_validate(row.user_input or {}),
            steps=[RoadmapStep.model_validate(step) for step in row.roadmap or []],
        )

    async def list_recent(self, user_id: Optional[str] = None, limit: int = 20) -> List[RoadmapListItem]:
        """Newest first."""

        async def _select(session: AsyncSession) -> List[UserRoadmap]:
            result = await session.execute(
                select(UserRoadmap)
                .where(_owner_clause(user_id))
                .order_by(UserRoadmap.timestamp.desc(), UserRoadmap.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

        rows = await self._run("list", _select)
        return [
            RoadmapListItem(
                roadmap_id=row.id,
                created_at=row.timestamp,
                job_profile=(row.user_input or {}).get("jobProfile", ""),
                step_count=len(row.roadmap or []),
            )
            for row in rows
        ]

    async def _run(self, operation: str, fn: Callable[[AsyncSession], Coroutine[Any, Any, Any]]) -> Any:
        """Run `fn` in a fresh session through the gateway, mapping failures to PersistenceError."""

        async def _with_session():
            async with self.session_factory() as session:
                return await fn(session)

        try:
            return await self.gateway.execute("database", _with_session)
        except CircuitOpenError as e:
            raise PersistenceError(f"Roadmap store temporarily unavailable: {e}") from e
        except asyncio.TimeoutError as e:
            raise PersistenceError(f"Roadmap store timed out during {operation}") from e
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Roadmap store {operation} failed: {e}") from e


def _owner_clause(user_id: Optional[str]):
    if user_id:
        return UserRoadmap.session_user_id == user_id
    return UserRoadmap.session_user_id.is_(None)

# Database models package
from app.models.user_roadmap import UserRoadmap

__all__ = [
    "UserRoadmap",
]

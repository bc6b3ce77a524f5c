"""
SQLAlchemy model for the user_roadmaps table.

One row per generated roadmap: the learner's input and the steps shown to
them, written in a single insert. Rows are only ever appended.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from app.database import Base


class UserRoadmap(Base):
    __tablename__ = "user_roadmaps"

    id = Column(Integer, primary_key=True, index=True)
    session_user_id = Column(String(255), nullable=True, index=True)

    user_input = Column(JSON, nullable=False)
    roadmap = Column(JSON, nullable=False)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


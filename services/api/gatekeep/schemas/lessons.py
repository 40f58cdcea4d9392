"""Response models for the lesson routes."""
from typing import Literal

from pydantic import BaseModel

ExperienceLevel = Literal["beginner", "intermediate", "advanced"]

LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")


class LessonContent(BaseModel):
    source: str
    level: ExperienceLevel

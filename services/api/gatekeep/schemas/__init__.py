from .lessons import (
    LEVELS,
    ExperienceLevel,
    LessonContent,
)

__all__ = [
    "LEVELS",
    "ExperienceLevel",
    "LessonContent",
]

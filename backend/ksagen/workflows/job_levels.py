"""
Job levels and the question difficulties each one is interviewed at.

Levels not listed here fall back to Intermediate and Advanced questions.
"""
from dataclasses import dataclass
from typing import Dict, List, Tuple

DIFFICULTY_LEVELS = ["Basic", "Intermediate", "Advanced", "Expert"]

DEFAULT_DIFFICULTIES = ["Intermediate", "Advanced"]
DEFAULT_FOCUS = "Intermediate and Advanced questions"


@dataclass(frozen=True)
class JobLevelProfile:
    primary: Tuple[str, ...]
    secondary: Tuple[str, ...]
    focus: str

    @property
    def difficulties(self) -> List[str]:
        return list(self.primary + self.secondary)


JOB_LEVEL_PROFILES: Dict[str, JobLevelProfile] = {
    "Entry Level": JobLevelProfile(("Basic",), ("Intermediate",), "Basic and Intermediate questions"),
    "Junior": JobLevelProfile(
        ("Basic", "Intermediate"), ("Advanced",), "Basic to Intermediate questions with some Advanced"
    ),
    "Mid-Level": JobLevelProfile(("Intermediate", "Advanced"), ("Basic",), "Intermediate and Advanced questions"),
    "Senior": JobLevelProfile(("Advanced", "Expert"), ("Intermediate",), "Advanced and Expert questions"),
    "Lead": JobLevelProfile(
        ("Advanced", "Expert"), ("Intermediate",), "Advanced and Expert questions with leadership focus"
    ),
    "Manager": JobLevelProfile(
        ("Advanced",), ("Expert", "Intermediate"), "Advanced questions with leadership and management focus"
    ),
    "Senior Manager": JobLevelProfile(("Advanced", "Expert"), (), "Advanced and Expert strategic questions"),
    "Director": JobLevelProfile(("Advanced", "Expert"), (), "Expert-level strategic and leadership questions"),
    "Senior Director": JobLevelProfile(
        ("Expert",), ("Advanced",), "Expert-level questions with cross-functional impact"
    ),
    "Vice President": JobLevelProfile(("Expert",), (), "Expert-level executive and strategic questions"),
    "Senior Vice President": JobLevelProfile(
        ("Expert",), (), "Expert-level questions with organization-wide impact"
    ),
    "Executive": JobLevelProfile(("Expert",), (), "Expert-level questions with industry and strategic impact"),
}

DIFFICULTY_TO_JOB_LEVELS: Dict[str, List[str]] = {
    "Basic": ["Entry Level", "Junior"],
    "Intermediate": ["Junior", "Mid-Level"],
    "Advanced": ["Mid-Level", "Senior"],
    "Expert": [
        "Senior",
        "Lead",
        "Manager",
        "Senior Manager",
        "Director",
        "Senior Director",
        "Vice President",
        "Senior Vice President",
        "Executive",
    ],
}


def difficulty_levels_for(job_level: str) -> List[str]:
    profile = JOB_LEVEL_PROFILES.get(job_level)
    return profile.difficulties if profile else list(DEFAULT_DIFFICULTIES)


def difficulty_focus(job_level: str) -> str:
    profile = JOB_LEVEL_PROFILES.get(job_level)
    return profile.focus if profile else DEFAULT_FOCUS


def assigned_levels(difficulty: str, available: List[str]) -> List[str]:
    """
    Hiring levels a question of this difficulty is asked at.

    A single available level takes every question. Otherwise the levels mapped
    to the difficulty are kept, and when none of them is available the
    question goes to all levels.
    """
    if len(available) <= 1:
        return list(available)
    targets = DIFFICULTY_TO_JOB_LEVELS.get(difficulty, [])
    assigned = [level for level in available if level in targets]
    if not assigned:
        print(f"[Warning: no level matches {difficulty} questions, assigning to all levels]")
        return list(available)
    return assigned

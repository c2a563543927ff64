"""Stage 1 output: raw facts pulled from the resume by the fast model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class InitialExtraction(BaseModel):
    """Six flat lists consumed only by the stage 2 prompt and by repair.

    Never persisted. Parsing is lenient: models sometimes return a single
    string or numbers where a list of strings is expected.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    technical_skills: list[str] = []
    soft_skills: list[str] = []
    keywords: list[str] = []
    achievements: list[str] = []
    education: list[str] = []
    experience: list[str] = []

    @field_validator("*", mode="before")
    @classmethod
    def _as_string_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        elif not isinstance(value, (list, tuple)):
            return []
        items = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, dict):
                item = ", ".join(str(v) for v in item.values() if v)
            text = str(item).strip()
            if text:
                items.append(text)
        return items

    def all_skills(self) -> list[str]:
        """Technical then soft skills, de-duplicated case-insensitively."""
        seen: set[str] = set()
        skills = []
        for skill in self.technical_skills + self.soft_skills:
            if skill.lower() not in seen:
                seen.add(skill.lower())
                skills.append(skill)
        return skills

"""Job description input: either free text or structured fields."""

import re
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_LIST_SEPARATORS_RE = re.compile(r"[,;\n]")


class RawJobDescription(BaseModel):
    """A pasted job posting, used verbatim."""
    kind: Literal["raw"] = "raw"
    text: str


class StructuredJobDescription(BaseModel):
    """A job description already broken into fields (e.g. by a JD parser)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: Literal["structured"] = "structured"
    role_title: str | None = None
    years_of_experience: str | None = None
    industry: str | None = None
    company_name: str | None = None
    summary: str | None = None
    skills: list[str] = []
    requirements: list[str] = []
    primary_keywords: list[str] = []

    @field_validator("role_title", "years_of_experience", "industry", "company_name", "summary", mode="before")
    @classmethod
    def _as_optional_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, bool):
            return None
        text = str(value).strip() if isinstance(value, (str, int, float)) else value
        return text or None

    @field_validator("skills", "requirements", "primary_keywords", mode="before")
    @classmethod
    def _as_string_list(cls, value: Any) -> list[str]:
        """Accept "Python, Go" or a single item where a list is expected."""
        if value is None:
            return []
        if isinstance(value, str):
            value = _LIST_SEPARATORS_RE.split(value)
        elif not isinstance(value, (list, tuple)):
            value = [value]
        return [str(item).strip() for item in value if item is not None and str(item).strip()]


JobDescription = Annotated[
    Union[RawJobDescription, StructuredJobDescription],
    Field(discriminator="kind"),
]


def coerce_job_description(value: Any) -> RawJobDescription | StructuredJobDescription | None:
    """Normalize the HTTP shape (str | dict | None) into the tagged union.

    Blank strings count as "no job description".
    """
    if value is None:
        return None
    if isinstance(value, (RawJobDescription, StructuredJobDescription)):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        return RawJobDescription(text=value)
    if isinstance(value, Mapping):
        data = dict(value)
        if data.get("kind") == "raw":
            return coerce_job_description(data.get("text"))
        data.pop("kind", None)
        return StructuredJobDescription.model_validate(data)
    raise TypeError(f"Unsupported job description type: {type(value).__name__}")

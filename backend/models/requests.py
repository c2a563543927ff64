from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.schemas.job_description import StructuredJobDescription


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    resume_text: str = Field(..., max_length=50000, description="Plain text resume content")
    job_description: str | StructuredJobDescription | None = Field(
        default=None,
        description="Job posting text, or structured job fields",
    )


class JobDescriptionParseRequest(BaseModel):
    text: str = Field(..., max_length=10000, description="Pasted job posting, plain text or HTML")

"""Inter-stage Pydantic contracts for the analysis pipeline."""

from models.schemas.initial_extraction import InitialExtraction
from models.schemas.job_description import (
    JobDescription,
    RawJobDescription,
    StructuredJobDescription,
    coerce_job_description,
)

__all__ = [
    "InitialExtraction",
    "JobDescription",
    "RawJobDescription",
    "StructuredJobDescription",
    "coerce_job_description",
]

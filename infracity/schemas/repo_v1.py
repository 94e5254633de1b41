from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RepoCreateV1(BaseModel):
    """Repository registration request.

    Required fields are checked by the registry rather than by the schema so
    that a missing field is reported as a 400 with a single readable message.
    """

    url: Optional[str] = Field(default=None, max_length=512)
    owner: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    default_branch: Optional[str] = Field(default=None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://github.com/acme/widgets",
                "owner": "acme",
                "name": "widgets",
                "default_branch": "main",
            }
        }
    )


class TechDocIn(BaseModel):
    """One entry of a bulk tech-docs upload."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    url: Optional[str] = Field(default=None, max_length=1024)

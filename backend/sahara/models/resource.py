# wellness resource models - static support content surfaced in chat

from typing import Optional
from pydantic import BaseModel, Field


class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    content: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class ResourceResponse(BaseModel):
    id: str
    title: str
    description: str
    category: str
    content: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: str = Field("", alias="createdAt")

    model_config = {"populate_by_name": True}


class ResourceListResponse(BaseModel):
    category: str
    resources: list[ResourceResponse]

# entry models - diary entry creation, update and response schemas
# content length is checked by the entry store so oversize maps to 400

from typing import Optional
from pydantic import BaseModel, Field

from sahara.models.insight import InsightResponse


class EntryCreate(BaseModel):
    """payload for a new diary entry"""
    content: str = Field(..., description="diary entry text")
    mood: Optional[int] = Field(None, ge=1, le=5, description="mood score 1-5")
    tags: list[str] = Field(default_factory=list, description="short labels")


class EntryUpdate(BaseModel):
    """partial update; unknown or read-only fields are dropped"""
    content: Optional[str] = None
    mood: Optional[int] = Field(None, ge=1, le=5)
    tags: Optional[list[str]] = None

    model_config = {"extra": "ignore"}


class EntryMetadata(BaseModel):
    word_count: int = Field(0, alias="wordCount")
    char_count: int = Field(0, alias="charCount")

    model_config = {"populate_by_name": True}


class EntryResponse(BaseModel):
    """a diary entry from the entries collection"""
    id: str
    owner_id: str = Field(..., alias="ownerId")
    kind: str = "diary"
    content: str
    mood: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    processed: bool = False
    analysis_status: str = Field("unprocessed", alias="analysisStatus")
    metadata: EntryMetadata = Field(default_factory=EntryMetadata)
    insights: Optional[list[InsightResponse]] = None

    model_config = {"populate_by_name": True}


class EntryDeleteResponse(BaseModel):
    id: str
    message: str = "Entry deleted successfully"


class SearchResponse(BaseModel):
    query: str
    count: int
    entries: list[EntryResponse]

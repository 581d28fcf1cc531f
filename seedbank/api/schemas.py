from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class FilesRequest(BaseModel):
    files: List[str] = Field(default_factory=list)


class FileResult(BaseModel):
    file: str
    objects: int
    summary: Dict[str, int] = Field(default_factory=dict)


class SeedResult(BaseModel):
    message: str
    objects_created: int = 0
    summary: Dict[str, int] = Field(default_factory=dict)
    results: List[FileResult] = Field(default_factory=list)
    read_only: bool = False


class RegistryEntryOut(BaseModel):
    id: Optional[int] = None
    key: str
    object_class: str
    object_id: Any = None
    description: Optional[str] = None
    context: Optional[str] = None
    created_at: Optional[str] = None
    object_exists: bool = True
    object_preview: Optional[str] = None


class RegistryPage(BaseModel):
    entries: List[RegistryEntryOut] = Field(default_factory=list)
    total_count: int = 0
    filtered_count: int = 0
    model_counts: List[Any] = Field(default_factory=list)
    per_page: int
    offset: int = 0

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from config.export_config import ExportConfig


class ExportRunRequest(ExportConfig):
    """Export options plus the project to export from; invalid options are rejected with 400."""
    project_key: Optional[str] = None

    def export_config(self) -> ExportConfig:
        return ExportConfig(**self.dict(exclude={"project_key"}))


class RunCreateResponse(BaseModel):
    run_id: str
    status: str
    created_at: str
    links: Dict[str, str]


class ExportedModel(BaseModel):
    productTypes: int = 0
    attributes: int = 0


class SummaryModel(BaseModel):
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    exported: ExportedModel = Field(default_factory=ExportedModel)


class RunStatusResponse(BaseModel):
    run_id: str
    status: str
    created_at: str
    updated_at: str
    summary: Optional[SummaryModel] = None
    error: Optional[Dict[str, Any]] = None

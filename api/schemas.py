from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class FilterSpecModel(BaseModel):
    date_from: Optional[str] = ""
    date_to: Optional[str] = ""


class ExportAckResponse(BaseModel):
    status: str
    line_item_count: int
    filters: FilterSpecModel

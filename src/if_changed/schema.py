from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel


class FileReportDTO(BaseModel):
    path: str
    status: Literal["checked", "exempt", "deleted"]
    violations: List[str] = []


class CheckReportDTO(BaseModel):
    from_ref: Optional[str] = None
    to_ref: Optional[str] = None
    files: List[FileReportDTO] = []
    violations: List[str] = []
    errors: List[str] = []
    exit_code: int = 0

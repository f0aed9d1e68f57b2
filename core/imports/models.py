from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Dict, Any, Literal
from datetime import datetime


# Sentinel suggestion meaning "create a custom field for this column"
NEW_CUSTOM_FIELD = "new_custom_field"

FieldType = Literal["text", "number", "phone", "email", "datetime", "checkbox"]


class ProcessingOptions(BaseModel):
    """Options for turning an uploaded file into a table"""
    max_rows: Optional[int] = Field(default=None, ge=0)
    skip_empty_rows: bool = True
    trim_whitespace: bool = True


class RawTable(BaseModel):
    """Header row plus data rows; every row has one cell per header"""
    model_config = ConfigDict(frozen=True)

    headers: List[str]
    rows: List[List[str]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _align_rows(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        headers = data.get("headers") or []
        width = len(headers)
        aligned = []
        for row in data.get("rows") or []:
            cells = ["" if cell is None else str(cell) for cell in row][:width]
            cells.extend([""] * (width - len(cells)))
            aligned.append(cells)
        return {**data, "rows": aligned}

    def column_values(self, index: int) -> List[str]:
        """All values of one column, in row order"""
        return [row[index] for row in self.rows]


class ParsedFileData(BaseModel):
    """A parsed upload and where it came from"""
    table: RawTable
    file_name: str
    file_size: int
    file_type: Literal["csv", "xlsx"]

    @property
    def headers(self) -> List[str]:
        return self.table.headers

    @property
    def rows(self) -> List[List[str]]:
        return self.table.rows

    @property
    def total_rows(self) -> int:
        return len(self.table.rows)


class FileValidationResult(BaseModel):
    """Outcome of the pre-parse file check"""
    valid: bool
    error: Optional[str] = None


class CustomFieldConfig(BaseModel):
    """Draft field definition proposed for an unmatched column"""
    label: str
    field_name: str
    type: FieldType = "text"
    core: bool = False
    required: bool = False


class ColumnMapping(BaseModel):
    """Proposed (or user-corrected) target field for one source column"""
    column_name: str
    column_index: int = Field(ge=0)
    suggested_field: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    data_type: str = "text"
    sample_data: List[str] = Field(default_factory=list)
    is_custom_field: bool = False
    custom_field_config: Optional[CustomFieldConfig] = None

    @property
    def is_resolved(self) -> bool:
        """True when the column maps to a concrete field"""
        return bool(self.suggested_field) and self.suggested_field != NEW_CUSTOM_FIELD


class ImportOutcome(BaseModel):
    """Counts and per-row errors of one import run"""
    imported: int = 0
    merged: int = 0
    errors: int = 0
    error_details: List[str] = Field(default_factory=list)
    cancelled: bool = False


# API models

class FileValidationRequest(BaseModel):
    """Request to check a file before uploading it"""
    file_name: Optional[str] = None
    file_size: int = Field(ge=0)


class UploadResponse(BaseModel):
    """Response for a parsed upload"""
    session_id: str
    step: str
    file_name: str
    file_size: int
    file_type: str
    headers: List[str]
    total_rows: int
    preview: List[List[str]] = Field(default_factory=list)


class MappingListResponse(BaseModel):
    """Current mappings of an import session"""
    session_id: str
    step: str
    mappings: List[ColumnMapping]
    can_process: bool
    used_fallback: bool = False


class UpdateMappingRequest(BaseModel):
    """Request to point a column at another field"""
    suggested_field: str


class CreateCustomFieldRequest(BaseModel):
    """Request to create a custom field from a column"""
    label: str = Field(min_length=1)
    type: Optional[FieldType] = None


class NavigateRequest(BaseModel):
    """Request to move an import session to another step"""
    step: str


class ImportProgressItem(BaseModel):
    """Rows processed so far"""
    processed: int = 0
    total: int = 0
    fraction: float = 0.0


class SessionStateResponse(BaseModel):
    """Snapshot of an import session"""
    session_id: str
    step: str
    file_name: str
    total_rows: int
    progress: ImportProgressItem
    outcome: Optional[ImportOutcome] = None
    error: Optional[str] = None


class ImportResultResponse(BaseModel):
    """Response for a finished import run"""
    success: bool
    session_id: str
    step: str
    imported: int
    merged: int
    errors: int
    error_details: List[str] = Field(default_factory=list)
    message: str


class ImportHistoryItem(BaseModel):
    """Single persisted import run"""
    id: str
    file_name: str
    file_size: int
    total_rows: int
    mapped_fields: Dict[str, str] = Field(default_factory=dict)
    status: str
    results: Dict[str, Any] = Field(default_factory=dict)
    created_by: str
    created_on: datetime
    completed_on: Optional[datetime] = None


class ImportHistoryResponse(BaseModel):
    """Response for listing import runs"""
    sessions: List[ImportHistoryItem]
    total: int

"""
Pydantic schemas for generation jobs and the artifacts they produce.
"""
from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

BACKENDS = ("firebase", "supabase", "nodejs")
BACKEND_ALIASES = {"nodejs-custom": "nodejs", "node": "nodejs"}

TERMINAL_STATUSES = ("completed", "failed")


def normalize_backend(value: str) -> str:
    """Map accepted backend spellings onto the canonical names."""
    value = (value or "").strip().lower()
    return BACKEND_ALIASES.get(value, value)


class ProgressSnapshot(BaseModel):
    """Progress of one job, as polled by the UI."""
    step: str = Field(..., description="Current step label")
    completed: List[str] = Field(default_factory=list, description="Labels of finished steps")
    current: str = Field(..., description="Current step label, 'Completed' or an error message")
    total: int = Field(..., ge=0, description="Total number of steps")


class GenerationRecord(BaseModel):
    """Stored generation job."""
    id: str = Field(..., description="Generation ID")
    user_id: str = Field(..., description="Owning user ID")
    app_name: str = Field(..., description="App name")
    prompt: str = Field(..., description="Free-text app description")
    backend: str = Field(..., description="Backend choice")
    icon_url: Optional[str] = Field(None, description="Icon reference (upload path or data URI)")
    status: str = Field(default="pending", description="pending | generating | completed | failed")
    progress: Dict = Field(default_factory=dict, description="Progress snapshot")
    result_url: Optional[str] = Field(None, description="Download handle once completed")
    apk_url: Optional[str] = Field(None, description="Binary artifact handle")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")

    class Config:
        from_attributes = True

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class GenerationCreate(BaseModel):
    """Validated submission for a new generation job."""
    app_name: str = Field(..., min_length=1, max_length=100, description="App name")
    prompt: str = Field(..., min_length=1, max_length=10000, description="App description")
    backend: str = Field(default="firebase", description="firebase | supabase | nodejs")
    icon_url: Optional[str] = Field(None, description="Pre-supplied icon reference")

    @field_validator("app_name", "prompt")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = normalize_backend(v)
        if v not in BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(BACKENDS)}")
        return v


class GenerationResponse(BaseModel):
    generation: GenerationRecord


class GenerationListResponse(BaseModel):
    generations: List[GenerationRecord]


class ProjectBundle(BaseModel):
    """Generated application source tree."""
    files: Dict[str, str] = Field(default_factory=dict, description="Relative path -> file content")
    structure: List[str] = Field(default_factory=list, description="Ordered list of file paths")
    readme: str = Field(default="", description="Markdown documentation")


class DesignSpec(BaseModel):
    """Colour/symbol choices driving icon rendering."""
    primary_color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")
    secondary_color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")
    symbol: str = Field(..., min_length=1, max_length=4)
    style: str = Field(default="modern", pattern="^(modern|minimal|playful|professional)$")


class IconRequest(BaseModel):
    app_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class IconResponse(BaseModel):
    icon_url: str = Field(..., description="SVG data URI")
    design_spec: DesignSpec
    source: str = Field(..., description="ai | fallback")
    message: str


class ParseDescriptionRequest(BaseModel):
    description: str = Field(..., min_length=10, max_length=5000)
    app_name: Optional[str] = Field(None, max_length=100)


class ParsedAppStructure(BaseModel):
    """Structured reading of a free-text app description."""
    app_name: Optional[str] = None
    language: str = Field(default="en", pattern="^(en|ar)$")
    screens: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    color_scheme: Optional[str] = None
    summary: str = ""


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    subject: str = Field(default="", max_length=300)
    message: str = Field(..., min_length=1, max_length=5000)

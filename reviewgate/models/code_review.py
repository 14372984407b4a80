# reviewgate/models/code_review.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
import enum


class SuggestionCategory(enum.Enum):
    """Represents the category of the suggestion."""

    NAMING_CONVENTION = "NAMING_CONVENTION"
    PERFORMANCE = "PERFORMANCE"
    SECURITY = "SECURITY"
    DESIGN_PATTERN = "DESIGN_PATTERN"
    ERROR_HANDLING = "ERROR_HANDLING"
    CODE_STYLE = "CODE_STYLE"
    OTHER = "OTHER"


class SuggestionSeverity(enum.Enum):
    """How urgently a suggestion should be addressed."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


def _enum_or_default(value, enum_cls, default):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            return default
    return default


class CodeSuggestion(BaseModel):
    """Represents a single finding reported by the reviewer."""

    category: SuggestionCategory = Field(
        SuggestionCategory.OTHER, description="The category of the finding."
    )
    severity: SuggestionSeverity = Field(
        SuggestionSeverity.INFO, description="How urgently it should be fixed."
    )
    message: str = Field(..., description="What is wrong and why it matters.")
    file_name: Optional[str] = Field(None, description="The path of the file.")
    line_number: Optional[int] = Field(
        None, description="The line in the new version of the file."
    )
    suggestion_fix: Optional[str] = Field(
        None, description="A proposed fix, ideally as a code snippet."
    )

    @field_validator("category", mode="before")
    @classmethod
    def _unknown_category_is_other(cls, value):
        return _enum_or_default(value, SuggestionCategory, SuggestionCategory.OTHER)

    @field_validator("severity", mode="before")
    @classmethod
    def _unknown_severity_is_info(cls, value):
        return _enum_or_default(value, SuggestionSeverity, SuggestionSeverity.INFO)


class CodeReview(BaseModel):
    """The structured result of an AI review."""

    score: int = Field(..., description="Overall quality score (0-10).", ge=0, le=10)
    summary: str = Field("", description="A short overview of the review.")
    suggestions: List[CodeSuggestion] = Field(
        default_factory=list, description="A list of actionable findings."
    )

    @field_validator("suggestions", mode="before")
    @classmethod
    def _null_suggestions_are_empty(cls, value):
        return value or []

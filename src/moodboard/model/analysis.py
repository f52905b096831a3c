from typing import List

from pydantic import BaseModel, Field, field_validator


class AnalysisResult(BaseModel):
    """Aesthetic analysis of one image, as returned by the model."""

    palette: List[str] = Field(default_factory=list)
    """Color codes, most representative first."""

    keywords: List[str] = Field(default_factory=list)
    """Aesthetic tags."""

    description: str = ""
    """Short description of the mood."""

    @field_validator("palette", mode="after")
    @classmethod
    def normalize_palette(cls, v: List[str]) -> List[str]:
        return [color.strip() for color in v if color.strip()]

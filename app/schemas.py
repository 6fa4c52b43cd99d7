"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel, Field
from typing import Optional

from app.cache import SelectionType


# ===== SELECTION SCHEMAS =====

class ReselectRequest(BaseModel):
    """Admin request to replace the pick for the current period"""
    type: SelectionType
    locale: str = "en"


class ReselectResponse(BaseModel):
    type: SelectionType
    movie: Optional[dict] = None
    invalidated: int = 0


class OverrideSelectionRequest(BaseModel):
    """Admin request to pin a movie for a period start date (YYYY-MM-DD)"""
    type: SelectionType
    date: str
    movieId: str = Field(min_length=1)


class OverrideSelectionResponse(BaseModel):
    success: bool = True
    type: SelectionType
    date: str
    movieId: str
    invalidated: int = 0


# ===== TRANSLATION SCHEMAS =====

class TranslationIn(BaseModel):
    """Add or update a movie title translation"""
    languageCode: str = Field(min_length=2, max_length=2)
    content: str = Field(min_length=1)


class TranslationResult(BaseModel):
    success: bool = True
    invalidated: int = 0


# ===== CACHE SCHEMAS =====

class CacheStats(BaseModel):
    """Edge cache metrics snapshot"""
    enabled: bool
    hits: int
    misses: int
    hitRate: float

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

class DJProfileIn(BaseModel):
    stageName: str = Field(min_length=1)
    location: str = ""
    genres: List[str] = []
    bio: str = ""
    hourlyRate: Optional[Decimal] = Field(default=None, gt=0)

class DJProfileUpdate(BaseModel):
    stageName: Optional[str] = None
    location: Optional[str] = None
    genres: Optional[List[str]] = None
    bio: Optional[str] = None
    hourlyRate: Optional[Decimal] = Field(default=None, gt=0)

class ReviewIn(BaseModel):
    djId: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: str = ""

from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict


VillaStatus = Literal["DRAFT", "PENDING_REVIEW", "APPROVED", "ACTIVE", "INACTIVE"]


class EntityModel(BaseModel):
    # Shape records may carry columns this client does not know about.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Villa(EntityModel):
    id: str
    villaCode: Optional[str] = None
    villaName: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    status: Optional[VillaStatus] = None
    isActive: bool = False
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    maxGuests: Optional[int] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class Photo(EntityModel):
    id: str
    villaId: str
    category: Optional[str] = None
    fileName: Optional[str] = None
    fileUrl: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    isMain: bool = False
    sortOrder: int = 0
    createdAt: Optional[str] = None


class Document(EntityModel):
    id: str
    villaId: str
    documentType: Optional[str] = None
    fileName: Optional[str] = None
    fileUrl: Optional[str] = None
    sharePointFileId: Optional[str] = None
    createdAt: Optional[str] = None


class OnboardingSession(EntityModel):
    id: str
    villaId: str
    userId: Optional[str] = None
    currentStep: int = 1
    totalSteps: int = 0
    stepsCompleted: int = 0
    fieldsCompleted: int = 0
    totalFields: int = 0
    isCompleted: bool = False
    lastActivityAt: Optional[str] = None
    createdAt: Optional[str] = None


class OnboardingProgress(BaseModel):
    """Onboarding session plus derived completion figures."""
    session: OnboardingSession
    completion_percentage: int
    step_completion_percentage: int
    is_in_progress: bool
    next_step: Optional[int] = None


class VillaStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_status: Dict[str, int]
    by_location: Dict[str, int]
    average_bedrooms: float
    average_guests: float

"""Pydantic models for LeadForge data structures."""

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidTransitionError


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _timestamp_id() -> str:
    return str(int(time.time() * 1000))


class ArtifactType(str, Enum):
    """Closed set of artifact kinds. The kind decides how content is rendered."""

    WEBSITE = "website"
    LANDING_PAGE = "landing-page"
    CONTENT = "content"
    MARKETING = "marketing"
    EMAIL = "email"
    CAMPAIGN = "campaign"
    REPORT = "report"
    SOCIAL_MEDIA = "social-media"
    STRATEGY = "strategy"


HTML_ARTIFACT_TYPES = frozenset(
    {
        ArtifactType.WEBSITE,
        ArtifactType.LANDING_PAGE,
        ArtifactType.EMAIL,
        ArtifactType.MARKETING,
        ArtifactType.CONTENT,
    }
)


class AgentType(str, Enum):
    """Kinds of build an agent can run for a business."""

    WEBSITE = "website"
    CONTENT = "content"
    MARKETING = "marketing"


class TaskStatus(str, Enum):
    """Lifecycle states of a background build."""

    QUEUED = "queued"
    BUILDING = "building"
    COMPLETED = "completed"
    ERROR = "error"
    PAUSED = "paused"


ALLOWED_TRANSITIONS: Dict[TaskStatus, frozenset] = {
    TaskStatus.QUEUED: frozenset({TaskStatus.BUILDING}),
    TaskStatus.BUILDING: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.PAUSED}
    ),
    TaskStatus.PAUSED: frozenset({TaskStatus.BUILDING}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ERROR: frozenset(),
}


class BusinessPhoto(BaseModel):
    """A photo of the business with an optional caption."""

    model_config = ConfigDict(frozen=True)

    url: str
    caption: str = ""


class BusinessRecord(BaseModel):
    """A prospect business. Immutable input to every generation path."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., min_length=1, description="Business name")
    category: str = Field(default="", description="Business category")
    type: str = Field(default="", description="Place type when no category is known")
    location: str = Field(default="", description="Free-form location, usually 'City, ST'")
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")

    # Contact
    phone: str = Field(default="")
    email: str = Field(default="")
    website: str = Field(default="")

    # Reputation
    rating: float = Field(default=0.0, description="Average rating, 0-5")
    total_reviews: int = Field(default=0, ge=0)
    has_website: Optional[bool] = Field(default=None)
    opportunity_score: int = Field(default=50, ge=0, le=100)

    # Optional presentation details
    description: str = Field(default="")
    hours: Dict[str, str] = Field(default_factory=dict)
    services: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    photos: List[BusinessPhoto] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank names."""
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, v: float) -> float:
        """Clamp the rating into 0-5."""
        return max(0.0, min(5.0, float(v)))

    @field_validator("photos", mode="before")
    @classmethod
    def validate_photos(cls, v: Any) -> Any:
        """Accept bare URLs as well as {url, caption} objects."""
        if not isinstance(v, list):
            return v
        return [{"url": p} if isinstance(p, str) else p for p in v]

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "BusinessRecord":
        """Parse a backend (snake_case) or dashboard (camelCase) business payload.

        Args:
            payload: Raw business dictionary.

        Returns:
            A validated BusinessRecord.

        Raises:
            ValueError: If the payload is not a JSON object.
            pydantic.ValidationError: If the payload has no usable name.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Business payload must be an object, got {type(payload).__name__}")

        def pick(*keys: str) -> Any:
            for key in keys:
                value = payload.get(key)
                if value is not None and value != "":
                    return value
            return None

        city = pick("city")
        state = pick("state")
        location = pick("location", "formatted_address")
        if not location and city:
            location = f"{city}, {state}" if state else city

        website = pick("website", "url")
        has_website = pick("has_website", "hasWebsite")
        if has_website is None and website:
            has_website = True

        business_id = pick("id", "place_id", "business_id")

        data: Dict[str, Any] = {
            "id": str(business_id) if business_id is not None else None,
            "name": pick("name", "business_name") or "",
            "category": pick("business_category", "category"),
            "type": pick("type", "business_type"),
            "location": location,
            "address": pick("address", "vicinity"),
            "city": city,
            "state": state,
            "phone": pick("phone", "phone_number", "formatted_phone_number"),
            "email": pick("email"),
            "website": website,
            "rating": pick("rating"),
            "total_reviews": pick("total_reviews", "totalReviews", "user_ratings_total", "reviews"),
            "has_website": has_website,
            "opportunity_score": pick("opportunity_score", "opportunityScore"),
            "description": pick("description"),
            "hours": pick("hours"),
            "services": pick("services"),
            "amenities": pick("amenities"),
            "photos": pick("photos"),
        }
        return cls.model_validate({k: v for k, v in data.items() if v is not None})

    @property
    def classification(self) -> str:
        """Category used for template dispatch."""
        return self.category or self.type or "Business"

    @property
    def lacks_website(self) -> bool:
        """True when the business has no known website."""
        if self.has_website is not None:
            return not self.has_website
        return not self.website

    def city_state(self) -> Tuple[str, str]:
        """Split the location on its first comma into (city, state)."""
        if self.city:
            return self.city, self.state
        parts = [p.strip() for p in self.location.split(",", 1)]
        city = parts[0] if parts else ""
        state = parts[1] if len(parts) > 1 else ""
        return city, state

    def to_backend_payload(self) -> Dict[str, Any]:
        """Build the snake_case business_info body expected by the backend."""
        city, state = self.city_state()
        return {
            "name": self.name,
            "business_category": self.category or "General",
            "city": city,
            "state": state,
            "rating": self.rating or 4.0,
            "total_reviews": self.total_reviews,
            "has_website": not self.lacks_website,
            "phone": self.phone,
            "email": self.email,
            "address": self.address or self.location,
        }


class GeneratedArtifact(BaseModel):
    """A generated website, content kit, campaign or other marketing artifact."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., description="Human-readable artifact name")
    type: ArtifactType = Field(..., description="Artifact kind")
    content: Union[str, Dict[str, Any]] = Field(
        ..., description="HTML document, text, or structured package"
    )
    generated_at: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def is_html_type(self) -> bool:
        """Whether the viewer renders this artifact as an HTML document."""
        return self.type in HTML_ARTIFACT_TYPES

    def replace_content(self, content: Union[str, Dict[str, Any]]) -> None:
        """Replace the content wholesale. Partial merges are not supported."""
        self.content = content


class ArtifactHistoryItem(GeneratedArtifact):
    """An artifact as kept in the user's history."""

    business_name: str = Field(default="")
    business_category: str = Field(default="")
    saved_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_artifact(
        cls,
        artifact: GeneratedArtifact,
        business_name: str = "",
        business_category: str = "",
    ) -> "ArtifactHistoryItem":
        """Wrap an artifact with its business context."""
        return cls(
            **artifact.model_dump(),
            business_name=business_name,
            business_category=business_category,
        )


class BuildingTask(BaseModel):
    """A background generation build for one (business, agent type) pair."""

    id: str = Field(default_factory=_timestamp_id)
    business_id: str
    business_name: str = Field(default="")
    agent_type: AgentType
    status: TaskStatus = Field(default=TaskStatus.QUEUED)
    progress: int = Field(default=0, ge=0, le=100)
    current_step: str = Field(default="")
    started_at: datetime = Field(default_factory=utcnow)
    estimated_completion: Optional[datetime] = Field(default=None)
    artifact: Optional[GeneratedArtifact] = Field(default=None)
    error: Optional[str] = Field(default=None)

    @property
    def key(self) -> Tuple[str, AgentType]:
        return (self.business_id, self.agent_type)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def can_transition_to(self, status: TaskStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(
        self,
        status: TaskStatus,
        step: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Move to a new status.

        Entering BUILDING restarts progress from zero; reaching COMPLETED
        sets it to 100.

        Raises:
            InvalidTransitionError: If the move is not in ALLOWED_TRANSITIONS.
        """
        if not self.can_transition_to(status):
            raise InvalidTransitionError(
                f"Task {self.id} cannot move from {self.status.value} to {status.value}",
                context={"task_id": self.id},
            )

        self.status = status
        if status == TaskStatus.BUILDING:
            self.progress = 0
            self.error = None
        elif status == TaskStatus.COMPLETED:
            self.progress = 100
        if step is not None:
            self.current_step = step
        if error is not None:
            self.error = error

    def advance(self, progress: int, step: Optional[str] = None) -> None:
        """Record a progress checkpoint. Progress never goes backwards while building."""
        if self.status != TaskStatus.BUILDING:
            raise InvalidTransitionError(
                f"Task {self.id} is {self.status.value}, not building",
                context={"task_id": self.id},
            )
        self.progress = max(self.progress, min(100, max(0, int(progress))))
        if step is not None:
            self.current_step = step


class SearchResultSummary(BaseModel):
    """Short form of a business returned by a search."""

    id: str
    name: str
    opportunity_score: int = 0
    analyzed: bool = False


class SearchHistoryEntry(BaseModel):
    """A past business search."""

    id: str = Field(default_factory=_timestamp_id)
    query: str
    location: str = Field(default="")
    category: str = Field(default="")
    results_count: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=utcnow)
    status: str = Field(default="completed")
    avg_opportunity_score: float = Field(default=0.0)
    businesses: List[SearchResultSummary] = Field(default_factory=list)

    @classmethod
    def from_results(
        cls, query: str, location: str, results: List[BusinessRecord]
    ) -> "SearchHistoryEntry":
        """Build a history entry for a completed search."""
        return cls(
            query=query,
            location=location,
            category=query,
            results_count=len(results),
            businesses=[
                SearchResultSummary(id=b.id, name=b.name) for b in results
            ],
        )


class AnalysisStatus(str, Enum):
    """Sales pipeline state of an analyzed business."""

    ACTIVE = "active"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    ARCHIVED = "archived"


class DigitalPresence(BaseModel):
    """Digital presence scores from a business analysis."""

    website: bool = False
    seo: int = 0
    social_media: int = 0
    reviews: float = 0.0


class AnalyzedBusinessRecord(BaseModel):
    """A business that has been scored as a sales opportunity."""

    id: str
    name: str
    category: str = Field(default="")
    location: str = Field(default="")
    website: str = Field(default="")
    email: str = Field(default="")
    phone: str = Field(default="")
    rating: float = Field(default=0.0)
    reviews: int = Field(default=0)
    opportunity_score: int = Field(default=0)
    weaknesses: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
    status: AnalysisStatus = Field(default=AnalysisStatus.ACTIVE)
    notes: str = Field(default="")
    digital_presence: DigitalPresence = Field(default_factory=DigitalPresence)

    @classmethod
    def from_analysis(
        cls, business: BusinessRecord, result: Dict[str, Any]
    ) -> "AnalyzedBusinessRecord":
        """Combine a business with a backend analysis response."""
        return cls(
            id=business.id,
            name=business.name,
            category=business.category,
            location=business.location,
            website=business.website,
            email=business.email,
            phone=business.phone,
            rating=business.rating,
            reviews=business.total_reviews,
            opportunity_score=int(result.get("opportunity_score") or 0),
            weaknesses=result.get("weaknesses") or [],
            strengths=result.get("strengths") or [],
            recommendations=result.get("recommendations") or [],
            digital_presence=DigitalPresence(
                website=not business.lacks_website,
                seo=int(result.get("seo_score") or 0),
                social_media=int(result.get("social_media_score") or 0),
                reviews=float(min(100, business.total_reviews)),
            ),
        )


class ProjectStatus(str, Enum):
    """State of a user project."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class UserProject(BaseModel):
    """All artifacts a user has generated for one business."""

    id: str = Field(default_factory=lambda: f"project_{uuid.uuid4().hex[:12]}")
    business_id: str
    business_name: str
    business_category: str = Field(default="")
    location: str = Field(default="")
    artifacts: List[GeneratedArtifact] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE)
    tags: List[str] = Field(default_factory=list)
    opportunity_score: Optional[int] = Field(default=None)

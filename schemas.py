"""
Database and API Schemas

Pydantic models for the documents kept in MongoDB and for the request and
response bodies of the HTTP API.

Collections:
- ConversationRecord -> "conversations"
- UsageEvent -> "usageEvents"
- UserProfile -> "users" (document id is the identity-provider uid)

Wire names are camelCase; Python attributes are snake_case.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestMetadata(CamelModel):
    user_agent: Optional[str] = Field(None, description="Caller's User-Agent header")
    ip: Optional[str] = Field(None, description="Caller's address")


# Persisted documents
class ConversationRecord(CamelModel):
    id: Optional[str] = None
    user_id: str = Field(..., description="Owner uid, never null")
    user_email: Optional[str] = None
    user_message: str
    ai_response: str
    language: str = Field("en", description="ISO language code, e.g., en, hi, te, ta, ml")
    created_at: datetime
    metadata: RequestMetadata = Field(default_factory=RequestMetadata)


class UsageEvent(CamelModel):
    id: Optional[str] = None
    user_id: str
    user_email: Optional[str] = None
    feature: Optional[str] = None
    page: Optional[str] = None
    created_at: datetime
    metadata: RequestMetadata = Field(default_factory=RequestMetadata)


class Preferences(CamelModel):
    language: str = "en"
    notifications: bool = True
    theme: Literal["light", "dark"] = "light"


class UserProfile(CamelModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime
    last_login_at: datetime
    preferences: Preferences = Field(default_factory=Preferences)


# Chat
class ChatTurn(CamelModel):
    role: str = Field(..., pattern="^(user|assistant|system)$", description="Who sent the message")
    content: str


class ChatRequest(CamelModel):
    message: Optional[str] = None
    conversation_history: List[ChatTurn] = Field(default_factory=list)
    language: Optional[str] = "en"


class ChatResponse(CamelModel):
    response: str
    timestamp: datetime


class ConversationList(CamelModel):
    conversations: List[ConversationRecord]


# Tracking and metrics
class TrackRequest(CamelModel):
    feature: Optional[str] = None
    page: Optional[str] = None


class UserTotals(CamelModel):
    total: int


class ConversationTotals(CamelModel):
    total: int
    unique_users: int


class UsageTotals(CamelModel):
    total: int
    unique_users: int
    by_feature: Dict[str, int]
    by_page: Dict[str, int]


class AdminMetrics(CamelModel):
    users: UserTotals
    conversations: ConversationTotals
    usage_events: UsageTotals


# Profile
class PreferencesUpdate(CamelModel):
    language: Optional[str] = None
    notifications: Optional[bool] = None
    theme: Optional[Literal["light", "dark"]] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    preferences: Optional[PreferencesUpdate] = None


class ProfileResponse(CamelModel):
    profile: UserProfile


# Disease diagnosis
Severity = Literal["mild", "moderate", "severe"]
AnalysisType = Literal["symptom-based", "cnn-based", "combined"]


class ClassificationResult(CamelModel):
    disease: str
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence score between 0 and 1")
    severity: Severity
    affected_area_percent: float = Field(..., ge=0.0, le=100.0)
    symptoms: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    analysis_type: AnalysisType
    description: Optional[str] = None
    prevention: Optional[str] = None


class PlantCheckResult(CamelModel):
    is_plant: bool
    reason: str
    confidence: float
    ratios: Dict[str, float] = Field(default_factory=dict)


class DiagnoseResponse(CamelModel):
    diagnosis: Optional[ClassificationResult]
    message: Optional[str] = None
    plant_check: Optional[PlantCheckResult] = None
    language: str = "en"


class DiagnosisOptions(CamelModel):
    crops: List[str]
    symptoms: List[str]


# Market
class PriceAlertIn(CamelModel):
    crop: str
    mandi: str
    target_price: float = Field(..., gt=0)
    condition: Literal["above", "below"]


class PriceAlert(PriceAlertIn):
    is_active: bool = True


class ApiMessage(BaseModel):
    message: str

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import FirebaseTokenVerifier, Principal, require_admin, require_basic_admin, require_user
from chat import SUPPORTED_LANGS, ChatService, ensure_lang, select_provider
from config import Settings
from database import CONVERSATIONS, USAGE_EVENTS, USERS, DocumentStore
from diagnosis import CROP_TYPES, SYMPTOMS, DiagnosisService
from errors import AppError, AuthorizationError, NotFoundError, ValidationError
from location import LocationService
from market import AVAILABLE_CROPS, AVAILABLE_MANDIS, MarketPriceService
from metrics import build_admin_metrics
from schemas import (
    AdminMetrics,
    ApiMessage,
    ChatRequest,
    ChatResponse,
    ConversationList,
    ConversationRecord,
    DiagnoseResponse,
    DiagnosisOptions,
    PriceAlert,
    PriceAlertIn,
    ProfileResponse,
    ProfileUpdate,
    TrackRequest,
    UsageEvent,
    UserProfile,
)
from vision import ImageClassifier

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {"language": "en", "notifications": True, "theme": "light"}
CONVERSATION_PAGE = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    verifier=None,
    chat_service: Optional[ChatService] = None,
    market: Optional[MarketPriceService] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title="KrishiSahay API")
    app.state.settings = settings
    app.state.store = store or DocumentStore.connect(settings.mongo_url, settings.database_name)
    app.state.verifier = verifier or FirebaseTokenVerifier(settings)
    app.state.chat = chat_service or ChatService(select_provider(settings))
    app.state.diagnosis = DiagnosisService(ImageClassifier())
    app.state.market = market or MarketPriceService()
    app.state.location = LocationService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)
    return app


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Dependencies
def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_chat(request: Request) -> ChatService:
    return request.app.state.chat


def get_diagnosis(request: Request) -> DiagnosisService:
    return request.app.state.diagnosis


def get_market(request: Request) -> MarketPriceService:
    return request.app.state.market


def get_location(request: Request) -> LocationService:
    return request.app.state.location


def request_metadata(request: Request) -> dict:
    return {
        "userAgent": request.headers.get("user-agent"),
        "ip": request.client.host if request.client else None,
    }


def ensure_profile(store: DocumentStore, user: Principal) -> dict:
    profile = store.get(USERS, user.uid)
    if profile is None:
        now = utcnow()
        store.set(USERS, user.uid, {
            "uid": user.uid,
            "email": user.email,
            "name": user.name or user.email,
            "createdAt": now,
            "lastLoginAt": now,
            "preferences": dict(DEFAULT_PREFERENCES),
        })
        logger.info("Created profile for %s", user.email or user.uid)
        profile = store.get(USERS, user.uid)
    return profile


def split_symptoms(values: List[str]) -> List[str]:
    symptoms = []
    for value in values:
        symptoms.extend(s.strip() for s in value.split(",") if s.strip())
    return list(dict.fromkeys(symptoms))


def register_routes(app: FastAPI) -> None:

    @app.get("/")
    def read_root():
        return {"message": "KrishiSahay backend running", "languages": SUPPORTED_LANGS}

    @app.get("/api/health")
    def health():
        return {"status": "healthy", "timestamp": utcnow().isoformat()}

    # Chat
    @app.post("/api/chat", response_model=ChatResponse)
    def chat_endpoint(
        payload: ChatRequest,
        request: Request,
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
        chat: ChatService = Depends(get_chat),
    ):
        message = (payload.message or "").strip()
        if not message:
            raise ValidationError("Message is required")

        lang = ensure_lang(payload.language)
        logger.info("Chat request from user: %s Language: %s", user.email, lang)

        history = [turn.model_dump() for turn in payload.conversation_history]
        reply = chat.reply(message, history, lang)

        record = ConversationRecord(
            user_id=user.uid,
            user_email=user.email,
            user_message=message,
            ai_response=reply,
            language=lang,
            created_at=utcnow(),
            metadata=request_metadata(request),
        )
        store.add(CONVERSATIONS, record.model_dump(by_alias=True, exclude={"id"}))
        return ChatResponse(response=reply, timestamp=record.created_at)

    @app.get("/api/conversations", response_model=ConversationList)
    def list_conversations(
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
    ):
        docs = store.latest_for_user(CONVERSATIONS, user.uid, limit=CONVERSATION_PAGE)
        return ConversationList(conversations=[ConversationRecord.model_validate(d) for d in docs])

    @app.delete("/api/conversations/{conversation_id}", response_model=ApiMessage)
    def delete_conversation(
        conversation_id: str,
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
    ):
        conversation = store.get(CONVERSATIONS, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        if conversation.get("userId") != user.uid:
            raise AuthorizationError("Access denied")
        store.delete(CONVERSATIONS, conversation_id)
        return ApiMessage(message="Conversation deleted successfully")

    # Usage tracking and metrics
    @app.post("/api/track")
    def track_usage(
        payload: TrackRequest,
        request: Request,
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
    ):
        feature = (payload.feature or "").strip() or None
        page = (payload.page or "").strip() or None
        if not feature and not page:
            raise ValidationError("feature or page is required")

        event = UsageEvent(
            user_id=user.uid,
            user_email=user.email,
            feature=feature,
            page=page,
            created_at=utcnow(),
            metadata=request_metadata(request),
        )
        store.add(USAGE_EVENTS, event.model_dump(by_alias=True, exclude={"id"}))
        return {"ok": True}

    @app.get("/api/admin/metrics", response_model=AdminMetrics)
    def admin_metrics(
        _admin: Principal = Depends(require_admin),
        store: DocumentStore = Depends(get_store),
    ):
        return build_admin_metrics(store)

    @app.get("/api/admin/metrics-basic", response_model=AdminMetrics)
    def admin_metrics_basic(
        _operator: str = Depends(require_basic_admin),
        store: DocumentStore = Depends(get_store),
    ):
        return build_admin_metrics(store)

    # Profile
    @app.get("/api/user/profile", response_model=ProfileResponse)
    def get_profile(
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
    ):
        return ProfileResponse(profile=UserProfile.model_validate(ensure_profile(store, user)))

    @app.patch("/api/user/profile", response_model=ProfileResponse)
    def update_profile(
        payload: ProfileUpdate,
        user: Principal = Depends(require_user),
        store: DocumentStore = Depends(get_store),
    ):
        ensure_profile(store, user)

        changes = {}
        if payload.name is not None:
            if not payload.name.strip():
                raise ValidationError("Name cannot be empty")
            changes["name"] = payload.name.strip()
        if payload.preferences is not None:
            prefs = payload.preferences.model_dump(exclude_none=True)
            if "language" in prefs and prefs["language"] not in SUPPORTED_LANGS:
                raise ValidationError(f"Unsupported language: {prefs['language']}")
            for key, value in prefs.items():
                changes[f"preferences.{key}"] = value
        if changes:
            store.update(USERS, user.uid, changes)

        return ProfileResponse(profile=UserProfile.model_validate(store.get(USERS, user.uid)))

    # Disease diagnosis
    @app.get("/api/diseases/options", response_model=DiagnosisOptions)
    def diagnosis_options():
        return DiagnosisOptions(crops=CROP_TYPES, symptoms=SYMPTOMS)

    @app.post("/api/diagnose", response_model=DiagnoseResponse)
    async def diagnose_endpoint(
        image: Optional[UploadFile] = File(None),
        crop_type: Optional[str] = Form(None),
        symptoms: List[str] = Form([]),
        language: Optional[str] = Form("en"),
        service: DiagnosisService = Depends(get_diagnosis),
    ):
        lang = ensure_lang(language)
        data = await image.read() if image is not None else None
        outcome = await run_in_threadpool(service.diagnose, crop_type, split_symptoms(symptoms), data or None)
        return DiagnoseResponse(
            diagnosis=outcome.diagnosis,
            message=outcome.message,
            plant_check=outcome.plant_check,
            language=lang,
        )

    # Market prices
    @app.get("/api/market/crops")
    def market_crops():
        return {"crops": AVAILABLE_CROPS}

    @app.get("/api/market/mandis")
    def market_mandis():
        return {"mandis": AVAILABLE_MANDIS}

    @app.get("/api/market/price")
    def market_price(crop: str, mandi: str, market: MarketPriceService = Depends(get_market)):
        return market.current_price(crop, mandi)

    @app.get("/api/market/trend")
    def market_trend(
        crop: str,
        mandi: str,
        days: int = Query(7, ge=1, le=90),
        market: MarketPriceService = Depends(get_market),
    ):
        return {"crop": crop, "mandi": mandi, "trend": market.price_trend(crop, mandi, days)}

    @app.get("/api/market/recommendation")
    def market_recommendation(crop: str, mandi: str, market: MarketPriceService = Depends(get_market)):
        return market.recommendation(crop, mandi)

    @app.get("/api/market/nearby")
    def market_nearby(state: Optional[str] = None, market: MarketPriceService = Depends(get_market)):
        return {"mandis": market.nearby_mandis(state)}

    @app.post("/api/market/alerts", response_model=PriceAlert)
    def create_alert(alert: PriceAlertIn, market: MarketPriceService = Depends(get_market)):
        return market.add_alert(alert)

    @app.get("/api/market/alerts", response_model=List[PriceAlert])
    def list_alerts(market: MarketPriceService = Depends(get_market)):
        return market.list_alerts()

    @app.post("/api/market/alerts/check", response_model=List[PriceAlert])
    def check_alerts(market: MarketPriceService = Depends(get_market)):
        return market.check_alerts()

    # Location suggestions
    @app.get("/api/location/search")
    def location_search(q: str = "", service: LocationService = Depends(get_location)):
        return {"results": service.search(q)}

    @app.get("/api/location/suggestions")
    def location_suggestions(
        lat: float = Query(..., ge=-90, le=90),
        lon: float = Query(..., ge=-180, le=180),
        service: LocationService = Depends(get_location),
    ):
        return service.suggestions(lat, lon)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)

from dotenv import load_dotenv
load_dotenv()  # Load .env file
import uuid
from typing import List, Optional
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

# ExplainRank Imports
from explainrank.config import get_settings
from explainrank.core.db import get_engine, get_session, init_db, reset_engine
from explainrank.core.schemas import (
    AncestorResponse,
    EventCreate,
    EventResponse,
    ExplanationCreate,
    ExplanationResponse,
    ExplanationStatus,
    ExplanationUpdate,
    LineageEdgeCreate,
    LineageEdgeResponse,
    Match,
    MatchSelectRequest,
    MatchSelection,
    MetricsResponse,
    RecomputeResponse,
    ScoreResponse,
    SimilarRequest,
    ViewCountResponse,
    ViewPeriod,
)
from explainrank.observability.logging_config import (
    OperationContext,
    generate_request_id,
    get_logger,
    log_exception,
    setup_logging,
)
from explainrank.resilience.error_handler import (
    DatabaseError,
    ExplainRankError,
    ExplanationNotFoundError,
    InvalidEventError,
    LineageError,
)
from explainrank.services import events as event_service
from explainrank.services import explanations as explanation_service
from explainrank.services import lineage as lineage_service
from explainrank.services import matches as match_service
from explainrank.services import scores as score_service

settings = get_settings()
logger = get_logger("explainrank.server")


# Initialize Database on Startup
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)
    logger.info("Database initialized.")

    yield

    reset_engine()

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

# Initialize Limiter
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    with OperationContext(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# --- Error mapping ---

@app.exception_handler(ExplanationNotFoundError)
async def not_found_handler(request: Request, exc: ExplanationNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(LineageError)
async def lineage_handler(request: Request, exc: LineageError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@app.exception_handler(InvalidEventError)
async def invalid_event_handler(request: Request, exc: InvalidEventError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    error_id = str(uuid.uuid4())
    log_exception(logger, f"Database error [ID: {error_id}]", exception=exc, path=request.url.path)
    return JSONResponse(status_code=503, content={"detail": f"Database unavailable. Error ID: {error_id}"})

@app.exception_handler(ExplainRankError)
async def domain_error_handler(request: Request, exc: ExplainRankError):
    error_id = str(uuid.uuid4())
    log_exception(logger, f"Request failed [ID: {error_id}]", exception=exc, path=request.url.path)
    # Hide internal details from clients
    return JSONResponse(status_code=500, content={"detail": f"Internal server error. Error ID: {error_id}"})


# --- Helper: Dependency for DB Session ---
def get_db():
    with get_session() as session:
        yield session


# --- Endpoints ---

@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "explainrank"}

# Explanations

@app.post("/api/explanations", response_model=ExplanationResponse, status_code=201)
def create_explanation(body: ExplanationCreate, db=Depends(get_db)):
    explanation = explanation_service.create_explanation(db, body)
    return explanation_service.to_response(explanation)

@app.get("/api/explanations", response_model=List[ExplanationResponse])
def list_explanations(
    status: Optional[ExplanationStatus] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    rows = explanation_service.list_explanations(db, status=status, limit=limit, offset=offset)
    return [explanation_service.to_response(e) for e in rows]

@app.get("/api/explanations/{explanation_id}", response_model=ExplanationResponse)
def get_explanation(explanation_id: int, db=Depends(get_db)):
    return explanation_service.to_response(explanation_service.get_explanation(db, explanation_id))

@app.patch("/api/explanations/{explanation_id}", response_model=ExplanationResponse)
def update_explanation(explanation_id: int, body: ExplanationUpdate, db=Depends(get_db)):
    explanation = explanation_service.update_explanation(db, explanation_id, body)
    return explanation_service.to_response(explanation)

@app.delete("/api/explanations/{explanation_id}", status_code=204)
def delete_explanation(explanation_id: int, db=Depends(get_db)):
    explanation_service.delete_explanation(db, explanation_id)

# Lineage

@app.post("/api/lineage", response_model=LineageEdgeResponse, status_code=201)
def add_lineage_edge(body: LineageEdgeCreate, db=Depends(get_db)):
    edge = lineage_service.add_lineage_edge(db, body.parent_id, body.child_id, created_by=body.created_by)
    return LineageEdgeResponse.model_validate(edge)

@app.get("/api/lineage", response_model=List[LineageEdgeResponse])
def list_lineage_edges(db=Depends(get_db)):
    return [LineageEdgeResponse.model_validate(edge) for edge in lineage_service.list_edges(db)]

@app.delete("/api/lineage/{parent_id}/{child_id}", status_code=204)
def remove_lineage_edge(parent_id: int, child_id: int, db=Depends(get_db)):
    lineage_service.remove_lineage_edge(db, parent_id, child_id)

@app.get("/api/explanations/{explanation_id}/ancestors", response_model=List[AncestorResponse])
def get_ancestors(
    explanation_id: int,
    max_depth: Optional[int] = Query(default=None, ge=1),
    db=Depends(get_db),
):
    ancestors = lineage_service.get_ancestors(db, explanation_id, max_depth=max_depth)
    return [
        AncestorResponse(ancestor_id=ancestor_id, depth=depth)
        for ancestor_id, depth in sorted(ancestors.items(), key=lambda item: (item[1], item[0]))
    ]

# Engagement

@app.post("/api/explanations/{explanation_id}/events", response_model=EventResponse, status_code=201)
def record_event(explanation_id: int, body: EventCreate, db=Depends(get_db)):
    with OperationContext(user_id=body.user_id):
        event = event_service.record_event(
            db, explanation_id, body.event_name, body.user_id, extra=body.metadata
        )
    return EventResponse(
        id=event.id,
        explanation_id=event.explanation_id,
        user_id=event.user_id,
        event_name=event.event_name.value,
        created_at=event.created_at,
    )

@app.get("/api/explanations/{explanation_id}/metrics", response_model=MetricsResponse)
def get_metrics(explanation_id: int, db=Depends(get_db)):
    return MetricsResponse.model_validate(event_service.get_metrics(db, explanation_id))

@app.get("/api/views", response_model=List[ViewCountResponse])
def get_view_counts(
    period: str = ViewPeriod.WEEK.value,
    limit: int = Query(default=100, ge=1, le=500),
    db=Depends(get_db),
):
    return [
        ViewCountResponse(explanation_id=explanation_id, view_count=count)
        for explanation_id, count in event_service.get_view_counts(db, period=period, limit=limit)
    ]

# Scores

@app.get("/api/explanations/{explanation_id}/score", response_model=ScoreResponse)
def get_score(explanation_id: int, db=Depends(get_db)):
    return ScoreResponse(**score_service.get_score_breakdown(db, explanation_id))

@app.get("/api/rankings", response_model=List[ScoreResponse])
def get_rankings(
    limit: int = Query(default=20, ge=1, le=500),
    include_unpublished: bool = False,
    db=Depends(get_db),
):
    results = score_service.rank_explanations(db, limit=limit, include_unpublished=include_unpublished)
    return [ScoreResponse(**r.to_dict()) for r in results]

@app.post("/api/scores/recompute", response_model=RecomputeResponse)
@limiter.limit("10/minute")
def recompute_scores(request: Request, db=Depends(get_db)):
    return RecomputeResponse(recomputed=score_service.recompute_stale(db))

# Matches

@app.post("/api/matches/similar", response_model=List[Match])
@limiter.limit("30/minute")
def similar_matches(request: Request, body: SimilarRequest, db=Depends(get_db)):
    results = match_service.find_similar(db, body.embedding, limit=body.limit, exclude_ids=body.exclude_ids)
    diversity = None
    if body.diversity_embedding is not None:
        diversity = match_service.find_similar(db, body.diversity_embedding, limit=len(results) or body.limit)
    matches = match_service.enhance_matches(db, results, diversity)
    return match_service.filter_test_content(matches)

@app.post("/api/matches/select", response_model=MatchSelection)
def select_match(body: MatchSelectRequest, db=Depends(get_db)):
    candidate_ids = [m.explanation_id for m in body.matches[:match_service.TOP_CANDIDATES]]
    scores = {}
    for explanation_id in candidate_ids:
        try:
            scores[explanation_id] = score_service.get_score(db, explanation_id).final_score
        except ExplanationNotFoundError:
            logger.warning(f"Match candidate {explanation_id} no longer exists")
    return match_service.select_best_match(body.matches, mode=body.mode, saved_id=body.saved_id, scores=scores)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)

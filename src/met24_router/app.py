from typing import List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from met24_router.core.credentials import mask_api_key, validate_key
from met24_router.core.logging import setup_logging
from met24_router.core.router import RouteLLMRouter
from met24_router.models import (
    ChatMessage,
    ComplexityHint,
    CostEstimate,
    FeatureType,
    OptimizationConfig,
    OptimizationLevel,
    PrivacyLevel,
    Provider,
    RouteLLMQuery,
    RouteTarget,
    RoutingResult,
)

# Load .env from the project root (two levels above src/met24_router)
ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")
setup_logging()


# --- Request bodies --------------------------------------------------------

class RouteBody(BaseModel):
    query: str
    feature: FeatureType = FeatureType.chat_coaching
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC
    history: List[ChatMessage] = Field(default_factory=list)
    mbti_type: Optional[str] = None
    complexity_hint: Optional[ComplexityHint] = None


class EstimateBody(BaseModel):
    query: str
    feature: FeatureType = FeatureType.chat_coaching
    privacy_level: PrivacyLevel = PrivacyLevel.PUBLIC


class RoleBody(EstimateBody):
    role: str


class ConfigPatch(BaseModel):
    optimization_level: Optional[OptimizationLevel] = None
    fallback_to_local: Optional[bool] = None


class KeyBody(BaseModel):
    provider: Provider
    api_key: str = ""


class KeyCheck(BaseModel):
    provider: Provider
    valid: bool
    masked_key: str


# --- App ---------------------------------------------------------------------

def get_router(request: Request) -> RouteLLMRouter:
    router = getattr(request.app.state, "router", None)
    if router is None:
        # built on first use so importing the module never touches env or disk
        router = RouteLLMRouter.from_env()
        request.app.state.router = router
    return router


def create_app(router: Optional[RouteLLMRouter] = None) -> FastAPI:
    app = FastAPI(title="Met24 RouteLLM Router", version="0.1")
    app.state.router = router

    # CORS so the router can be called from the Vite dev server (5173)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    async def healthz(r: RouteLLMRouter = Depends(get_router)):
        return {
            "status": "ok",
            "providers": [p.value for p in r.available_providers()],
        }

    @app.post("/v1/route", response_model=RoutingResult)
    async def route(body: RouteBody, r: RouteLLMRouter = Depends(get_router)) -> RoutingResult:
        return await r.route(
            body.query,
            body.feature,
            body.privacy_level,
            history=body.history,
            mbti_type=body.mbti_type,
            complexity_hint=body.complexity_hint,
        )

    @app.post("/v1/estimate", response_model=CostEstimate)
    async def estimate(body: EstimateBody, r: RouteLLMRouter = Depends(get_router)) -> CostEstimate:
        return r.estimate_cost(body.query, body.feature, body.privacy_level)

    @app.post("/v1/role", response_model=RouteTarget)
    async def role(body: RoleBody, r: RouteLLMRouter = Depends(get_router)) -> RouteTarget:
        query = RouteLLMQuery(query=body.query, feature=body.feature, privacy_level=body.privacy_level)
        try:
            return r.select_model_for_role(body.role, query)
        except ValueError as ex:
            raise HTTPException(status_code=422, detail=str(ex))

    @app.get("/v1/config", response_model=OptimizationConfig)
    async def get_config(r: RouteLLMRouter = Depends(get_router)) -> OptimizationConfig:
        return r.store.get_config()

    @app.put("/v1/config", response_model=OptimizationConfig)
    async def put_config(
        patch: ConfigPatch = Body(...),
        r: RouteLLMRouter = Depends(get_router),
    ) -> OptimizationConfig:
        return r.store.update_config(**patch.model_dump(exclude_none=True))

    @app.post("/v1/config/reset", response_model=OptimizationConfig)
    async def reset_config(r: RouteLLMRouter = Depends(get_router)) -> OptimizationConfig:
        return r.store.reset()

    @app.post("/v1/keys/validate", response_model=KeyCheck)
    async def keys_validate(body: KeyBody, r: RouteLLMRouter = Depends(get_router)) -> KeyCheck:
        ok = await validate_key(body.provider, body.api_key, settings=r.settings)
        return KeyCheck(provider=body.provider, valid=ok, masked_key=mask_api_key(body.api_key))

    return app


app = create_app()

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health(request: Request):
    registry = request.app.state.registry
    return {"status": "ok", "active_jobs": len(registry.active_jobs())}


@router.get("/config-check")
def config_check(request: Request):
    """Which integrations are configured. Never returns the values."""
    s = request.app.state.settings
    return {
        "image_provider": bool(s.kieai_api_url and s.kieai_auth_token),
        "llm": bool(s.llm_api_key),
        "object_storage": request.app.state.storage is not None,
        "database": s.database_url.split(":", 1)[0],
        "source_language": s.source_language,
    }

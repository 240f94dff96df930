"""FastAPI dependencies for the long-lived objects built in the app lifespan."""
from fastapi import HTTPException, Request

from colorbook.jobs.batch import BatchCoordinator
from colorbook.jobs.gateway import ProviderGateway
from colorbook.jobs.registry import JobRegistry
from colorbook.services.ai_generator import TextGenerator
from colorbook.services.drafts import DraftStore
from colorbook.services.storage import ObjectStorage


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_coordinator(request: Request) -> BatchCoordinator:
    return request.app.state.coordinator


def get_drafts(request: Request) -> DraftStore:
    return request.app.state.drafts


def get_gateway(request: Request) -> ProviderGateway:
    return request.app.state.gateway


def get_text_generator(request: Request) -> TextGenerator:
    return request.app.state.text


def get_storage(request: Request) -> ObjectStorage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Object storage is not configured")
    return storage

from __future__ import annotations

import httpx

from colorbook.config import Settings
from colorbook.services.providers.base import ImageProvider, ImageRequest
from colorbook.services.providers.flux import FluxKontextProvider
from colorbook.services.providers.gpt4o import Gpt4oImageProvider

DEFAULT_PROVIDER = Gpt4oImageProvider.name

PROVIDER_CLASSES = {
    Gpt4oImageProvider.name: Gpt4oImageProvider,
    FluxKontextProvider.name: FluxKontextProvider,
}


def build_providers(settings: Settings, client: httpx.AsyncClient) -> dict[str, ImageProvider]:
    return {
        name: cls(settings.kieai_api_url, settings.kieai_auth_token, client)
        for name, cls in PROVIDER_CLASSES.items()
    }


__all__ = ["DEFAULT_PROVIDER", "ImageProvider", "ImageRequest", "build_providers"]

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

JOB_TYPES = (
    "theme_generation",
    "content_generation",
    "translation",
    "text_to_image",
    "image_to_image",
    "colorization",
)


class PollPolicy(BaseModel):
    """Timer settings for one job type."""

    initial_delay: float = 3.0
    interval: float = 2.0
    max_attempts: int = 60
    retry_budget: int = 3


def _default_policies() -> dict[str, PollPolicy]:
    return {
        "theme_generation": PollPolicy(initial_delay=1.0, interval=2.0, max_attempts=60),
        "content_generation": PollPolicy(initial_delay=1.0, interval=2.0, max_attempts=60),
        "translation": PollPolicy(initial_delay=1.0, interval=2.0, max_attempts=60),
        "text_to_image": PollPolicy(max_attempts=150),
        "image_to_image": PollPolicy(max_attempts=150),
        "colorization": PollPolicy(max_attempts=100),
    }


class Settings(BaseModel):
    database_url: str = "sqlite:///./colorbook.db"

    kieai_api_url: str = "https://kieai.erweima.ai/api/v1"
    kieai_auth_token: str = ""

    llm_api_key: str = ""
    llm_base_url: str = "https://api.deepseek.com/v1"
    llm_model: str = "deepseek-chat"

    s3_endpoint: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_bucket_name: str = ""
    s3_public_url: str = ""
    s3_region: str = "us-east-1"
    s3_key_prefix: str = "colorbook"

    source_language: str = "zh"
    server_url: str = "http://localhost:3005"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"])
    log_level: str = "INFO"

    job_grace_seconds: float = 3.0
    batch_throttle_seconds: float = 1.0
    poll_policies: dict[str, PollPolicy] = Field(default_factory=_default_policies)

    @classmethod
    def from_env(cls) -> "Settings":
        values: dict = {}
        for name in cls.model_fields:
            if name == "poll_policies":
                continue
            raw = os.getenv(name.upper())
            if raw is None or not raw.strip():
                continue
            if name == "cors_origins":
                values[name] = [x.strip() for x in raw.split(",") if x.strip()]
            else:
                values[name] = raw.strip()
        return cls(**values)

    def required(self, name: str) -> str:
        v = (getattr(self, name, "") or "").strip()
        if not v:
            raise RuntimeError(f"{name.upper()} is not set")
        return v


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings

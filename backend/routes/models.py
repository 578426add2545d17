"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel


class AskBody(BaseModel):
    question: str
    session_id: str | None = None
    player_id: str = "guest"
    player_name: str = ""


class ResetBody(BaseModel):
    player_id: str = "guest"
    player_name: str = ""


class MigrateBody(BaseModel):
    user_id: str


class JudgeSettings(BaseModel):
    provider_url: str | None = None
    api_key: str | None = None
    provider_format: str | None = None
    model: str | None = None
    timeout: float | None = None
    temperature: float | None = None


class UpdateSettings(BaseModel):
    judge: JudgeSettings | None = None
    default_puzzle: str | None = None


class PuzzleSummary(BaseModel):
    id: str
    slug: str
    title: str
    prompt: str
    total_topics: int

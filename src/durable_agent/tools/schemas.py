"""Strict Pydantic schemas for tool inputs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class SearchReposInput(StrictModel):
    query: str = Field(description="Search query (e.g., 'typescript orm')")
    limit: int = Field(default=5, ge=1, le=100, description="Max results (default 5)")


class GetRepoInput(StrictModel):
    owner: str = Field(min_length=1, description="Repository owner (e.g., 'cloudflare')")
    repo: str = Field(min_length=1, description="Repository name (e.g., 'workers-sdk')")

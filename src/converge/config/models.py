"""Pydantic models for orchestrator configuration."""

from typing import Dict, Optional
from pydantic import BaseModel, Field
from ..model.schema import ResourceTypeSchema, TypeRegistry


class ExecutorConfig(BaseModel):
    """Worker pool settings."""
    concurrency: int = Field(4, ge=1, description="Maximum plan items executing at once (K)")
    run_timeout: Optional[float] = Field(None, gt=0, description="Cancel the run after this many seconds")


class RetryConfig(BaseModel):
    """Exponential backoff for transient provider errors."""
    max_attempts: int = Field(5, ge=1, description="Attempts per provider call, including the first")
    backoff_multiplier: float = Field(1.0, ge=0)
    backoff_min: float = Field(1.0, ge=0)
    backoff_max: float = Field(30.0, ge=0)


class ReadinessConfig(BaseModel):
    """Default readiness polling for types with await_ready."""
    poll_interval: float = Field(15.0, gt=0)
    timeout: float = Field(2700.0, gt=0)


class OrchestratorConfig(BaseModel):
    """Complete configuration tree."""
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    resource_types: Dict[str, ResourceTypeSchema] = Field(default_factory=dict)

    def type_registry(self) -> TypeRegistry:
        return TypeRegistry(self.resource_types)

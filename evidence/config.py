# SPDX-License-Identifier: AGPL-3.0-only

"""
Configuration service for the evidence engine.

This module centralizes all configuration settings for analysis, aggregation and
persistence, supporting environment variable overrides and validation.
"""

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalysisConfig(BaseSettings):
    """Configuration settings for the evidence engine."""

    model_config = SettingsConfigDict(env_prefix="EVIDENCE_", case_sensitive=False)

    # Reasoning service settings
    ai_service: str = Field(default="gateway", description="Reasoning provider (gateway, anthropic, ollama)")
    ai_timeout: int = Field(default=120, description="Reasoning request timeout in seconds")
    max_tokens: int = Field(default=4096, description="Maximum tokens in a reasoning response")
    temperature: float = Field(default=0.2, description="Sampling temperature")

    # OpenAI-compatible gateway settings
    gateway_base_url: str = Field(default="https://ai.gateway.lovable.dev/v1", description="Chat completions base URL")
    gateway_api_key: Optional[str] = Field(default=None, description="Gateway API key")
    gateway_model: str = Field(default="google/gemini-2.5-flash", description="Gateway model name")

    # Anthropic settings
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key")
    anthropic_model: str = Field(default="claude-3-5-sonnet-20241022", description="Anthropic model name")

    # Ollama settings
    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    ollama_model: str = Field(default="llama3.2-vision", description="Ollama model name")

    # Retry settings
    retry_max_attempts: int = Field(default=3, ge=1, description="Attempts per reasoning call")
    retry_base_delay: float = Field(default=1.0, ge=0, description="First backoff delay in seconds, doubled per attempt")

    # Input validation
    min_image_base64_length: int = Field(default=100, description="Shortest accepted base64 image body")

    # Aggregation settings
    staleness_months: int = Field(default=6, description="Freshness window for evidence in months")
    dedup_prefix_length: int = Field(default=30, description="Shared prefix that marks two recommendations as duplicates")

    # Persistence settings
    link_store_path: Optional[str] = Field(default=None, description="JSON file for links; in-memory when unset")
    reference_data_path: str = Field(default="data/reference_catalog.json", description="Reference catalog JSON file")

    # Summary cache
    summary_cache_size: int = Field(default=200, description="Memoized article summaries kept in memory")

    log_level: str = Field(default="INFO", description="Root log level")

    def get_ai_config(self) -> dict:
        """Get reasoning service configuration."""
        return {
            "service": self.ai_service,
            "timeout": self.ai_timeout,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "gateway": {
                "base_url": self.gateway_base_url,
                "api_key": self.gateway_api_key,
                "model": self.gateway_model,
            },
            "anthropic": {
                "api_key": self.anthropic_api_key,
                "model": self.anthropic_model,
            },
            "ollama": {
                "base_url": self.ollama_base_url,
                "model": self.ollama_model,
            },
        }

    def get_retry_config(self) -> dict:
        """Get retry configuration."""
        return {
            "max_attempts": self.retry_max_attempts,
            "base_delay": self.retry_base_delay,
        }

    def get_synthesis_config(self) -> dict:
        """Get recommendation synthesis configuration."""
        return {
            "staleness_months": self.staleness_months,
            "dedup_prefix_length": self.dedup_prefix_length,
        }

    def validate_ai_config(self) -> bool:
        """Validate reasoning service configuration."""
        if self.ai_service == "gateway" and not self.gateway_api_key:
            return False
        if self.ai_service == "anthropic" and not self.anthropic_api_key:
            return False
        return True

    def get_effective_reference_data_path(self) -> str:
        """Get the reference catalog path resolved against the working directory."""
        if os.path.isabs(self.reference_data_path):
            return self.reference_data_path
        return os.path.join(os.getcwd(), self.reference_data_path)


# Global configuration instance
config = AnalysisConfig()

"""
AI service data models for generation requests and status callbacks.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from config.app_config import AppConfig


@dataclass(frozen=True)
class GenerationSettings:
    """Everything the generation endpoint needs for one request"""
    api_key: str = ""
    model_name: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 1000
    streaming: bool = True

    @classmethod
    def from_config(cls, config: AppConfig) -> 'GenerationSettings':
        return cls(
            api_key=config.api.openai_api_key,
            model_name=config.llm.model_name,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
            streaming=config.llm.streaming,
        )


@dataclass
class GenerationCallbacks:
    """
    Status callbacks invoked by the generation client.

    ``on_partial_response`` always receives the full text accumulated so far,
    never just the latest chunk. ``on_fallback`` fires when a failed stream is
    about to be retried as a single non-streaming request.
    """
    on_start: Optional[Callable[[], Any]] = None
    on_partial_response: Optional[Callable[[str], Any]] = None
    on_complete: Optional[Callable[[], Any]] = None
    on_error: Optional[Callable[[Exception], Any]] = None
    on_fallback: Optional[Callable[[Exception], Any]] = None

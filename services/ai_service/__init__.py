"""
AI service - handles requests to the text-generation endpoint.
"""

from .generation_client import (
    GenerationClient,
    build_chat_model,
    build_context_prompt,
    describe_error,
    get_generation_client,
)
from .models import GenerationCallbacks, GenerationSettings

__all__ = [
    'GenerationClient',
    'GenerationCallbacks',
    'GenerationSettings',
    'build_chat_model',
    'build_context_prompt',
    'describe_error',
    'get_generation_client'
]

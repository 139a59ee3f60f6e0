"""
Generation client - drives one request against the chat model endpoint.
Hides "one-shot" versus "streaming" delivery behind a single callback contract
and falls back to a one-shot request when a stream fails.
"""

from typing import Any, Callable, List, Optional

import openai
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from services.ai_service.models import GenerationCallbacks, GenerationSettings
from services.errors import GenerationTransportError
from utils.logging_config import get_logger, log_execution_time


NO_RESPONSE_TEXT = "No response"
ERROR_RESPONSE_TEXT = "Error generating response. Please try again."

CONTEXT_PROMPT_TEMPLATE = (
    "Context information:\n{context}\n\n"
    "User question: {question}\n\n"
    "Please answer based on the context provided."
)

ModelFactory = Callable[[GenerationSettings], Any]


def build_chat_model(settings: GenerationSettings) -> ChatOpenAI:
    """Default model factory: a ChatOpenAI instance configured from settings"""
    return ChatOpenAI(
        model=settings.model_name,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        openai_api_key=settings.api_key,
        streaming=settings.streaming
    )


def build_context_prompt(prompt: str, context_text: str) -> str:
    return CONTEXT_PROMPT_TEMPLATE.format(context=context_text, question=prompt)


def content_to_text(content: Any) -> str:
    """Flatten a LangChain message content (str or list of parts) into text"""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


def describe_error(error: Exception) -> str:
    """
    User-facing notification text for a generation failure

    Args:
        error: GenerationTransportError or a raw provider exception

    Returns:
        Short message suitable for a toast
    """
    cause = error.__cause__ if isinstance(error, GenerationTransportError) and error.__cause__ else error

    if isinstance(cause, openai.AuthenticationError):
        return "🔑 Authentication failed - check the API key in settings."
    if isinstance(cause, openai.RateLimitError):
        return "🐌 Rate limit reached - wait a moment before trying again."
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(cause, openai.APITimeoutError):
        return "⏱️ The request timed out - please try again."
    if isinstance(cause, openai.APIConnectionError):
        return "🌐 Could not reach the model service - check your connection."
    if isinstance(cause, openai.InternalServerError):
        return "🔧 The model service is having trouble - try again in a few minutes."
    return "❌ Error generating response. Please try again."


class GenerationClient:
    """
    Client for the remote text-generation endpoint.

    Callers never see provider exceptions: failures are reported through
    ``on_error`` and the returned text degrades to a fixed placeholder.
    """

    def __init__(self, model_factory: Optional[ModelFactory] = None):
        self.logger = get_logger(__name__)
        self.model_factory = model_factory or build_chat_model

    def _build_messages(self, prompt: str, system_prompt: Optional[str]) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))
        return messages

    def _notify(self, callback: Optional[Callable], *args) -> None:
        """Invoke a host callback; a faulty callback must not break the request protocol"""
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            self.logger.exception("Generation callback raised")

    async def _invoke(self, settings: GenerationSettings, messages: List[BaseMessage]) -> str:
        """Single atomic request; empty text is normalized to a placeholder"""
        try:
            with log_execution_time(self.logger, "generation_invoke", model=settings.model_name):
                model = self.model_factory(settings)
                response = await model.ainvoke(messages)
        except Exception as e:
            error = GenerationTransportError(f"{type(e).__name__}: {e}", stage="invoke")
            raise error from e

        return content_to_text(getattr(response, "content", response)) or NO_RESPONSE_TEXT

    async def generate(
        self,
        settings: GenerationSettings,
        prompt: str,
        callbacks: Optional[GenerationCallbacks] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Generate a response for a prompt

        Args:
            settings: Credential, model and sampling settings
            prompt: User prompt
            callbacks: Optional status callbacks
            system_prompt: Optional system instructions sent ahead of the prompt

        Returns:
            Final response text, or a placeholder if every attempt failed
        """
        callbacks = callbacks or GenerationCallbacks()
        messages = self._build_messages(prompt, system_prompt)

        self._notify(callbacks.on_start)

        if not settings.streaming or callbacks.on_partial_response is None:
            try:
                result = await self._invoke(settings, messages)
            except GenerationTransportError as e:
                self.logger.error(f"API error: {e}")
                self._notify(callbacks.on_error, e)
                return ERROR_RESPONSE_TEXT
            self._notify(callbacks.on_complete)
            return result

        accumulated = ""
        chunk_count = 0
        try:
            model = self.model_factory(settings)
            async for chunk in model.astream(messages):
                accumulated += content_to_text(getattr(chunk, "content", chunk))
                chunk_count += 1
                self._notify(callbacks.on_partial_response, accumulated)
        except Exception as e:
            error = GenerationTransportError(f"{type(e).__name__}: {e}", stage="stream")
            error.__cause__ = e
            self.logger.warning(
                f"Streaming error after {chunk_count} chunks, falling back to a single request: {e}"
            )
            self._notify(callbacks.on_error, error)
            self._notify(callbacks.on_fallback, error)

            try:
                result = await self._invoke(settings, messages)
            except GenerationTransportError as fallback_error:
                self.logger.error(f"Fallback error: {fallback_error}")
                self._notify(callbacks.on_error, fallback_error)
                return ERROR_RESPONSE_TEXT
            self._notify(callbacks.on_complete)
            return result

        self.logger.debug(f"Stream completed with {chunk_count} chunks ({len(accumulated)} chars)")
        self._notify(callbacks.on_complete)
        return accumulated

    async def generate_with_context(
        self,
        settings: GenerationSettings,
        prompt: str,
        context_text: str,
        callbacks: Optional[GenerationCallbacks] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """Generate with auxiliary reference text (e.g. the open document) embedded in the prompt"""
        return await self.generate(
            settings,
            build_context_prompt(prompt, context_text),
            callbacks=callbacks,
            system_prompt=system_prompt,
        )

    async def test_connection(self, settings: GenerationSettings) -> bool:
        """
        Check that the credential and model work with a tiny request

        Returns:
            bool: True if the endpoint answered without an error
        """
        try:
            await self._invoke(settings, self._build_messages("ping", None))
            self.logger.info("Generation endpoint connection test successful")
            return True
        except GenerationTransportError as e:
            self.logger.error(f"Generation endpoint connection test failed: {e}")
            return False


# Global client instance
_generation_client: Optional[GenerationClient] = None


def get_generation_client() -> GenerationClient:
    """Get the global generation client instance"""
    global _generation_client
    if _generation_client is None:
        _generation_client = GenerationClient()
    return _generation_client

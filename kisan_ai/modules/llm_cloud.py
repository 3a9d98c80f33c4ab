# in kisan_ai/modules/llm_cloud.py

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from config import config
from ..errors import LLMNotConfiguredError

logger = logging.getLogger(__name__)


class CloudLLMService:
    """
    Thin client for an OpenAI chat model.

    Exposes two calls, `complete_text` and `complete_vision`, both returning
    the raw response text. Prompting and parsing live in AIGatewayService.
    Calls are single-attempt and bounded by `config.LLM_TIMEOUT_SECONDS`.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None,
                 timeout: Optional[float] = None, max_tokens: Optional[int] = None):
        self.api_key = config.OPENAI_API_KEY if api_key is None else api_key
        self.model_name = model_name or config.OPENAI_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or config.LLM_MAX_TOKENS
        self.client: Optional[AsyncOpenAI] = None
        self.is_available = bool(self.api_key)

        if not self.api_key:
            logger.warning("OpenAI API key not configured")

    def _get_client(self) -> AsyncOpenAI:
        if not self.is_available:
            raise LLMNotConfiguredError("OpenAI API key not configured")
        if self.client is None:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
            logger.info(f"Cloud LLM client initialized for model {self.model_name}")
        return self.client

    async def complete_text(self, system_prompt: str, user_prompt: str) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._complete(messages)

    async def complete_vision(self, prompt: str, image_base64: str, mime_type: str = "image/jpeg") -> str:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
                ],
            }
        ]
        return await self._complete(messages)

    async def _complete(self, messages: List[Dict[str, Any]]) -> str:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=config.LLM_TEMPERATURE,
        )
        if not response.choices:
            raise ValueError("Model returned no choices")

        usage = response.usage
        if usage:
            logger.debug(f"LLM usage: prompt={usage.prompt_tokens} completion={usage.completion_tokens}")
        return (response.choices[0].message.content or "").strip()

    def get_service_status(self) -> Dict[str, Any]:
        """Get service status information"""
        return {
            "is_available": self.is_available,
            "provider": "OpenAI",
            "model": self.model_name,
            "api_key_configured": bool(self.api_key),
            "client_initialized": self.client is not None,
        }

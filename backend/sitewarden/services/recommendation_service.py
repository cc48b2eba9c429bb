# backend/sitewarden/services/recommendation_service.py
import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx
from openai import OpenAI

from ..config import Settings, settings

logger = logging.getLogger("sitewarden.recommendations")


class RecommendationService:
    """LLM-backed SEO copy recommendations."""

    def __init__(self, client: Optional[OpenAI] = None, config: Optional[Settings] = None):
        self.config = config or settings
        self._client: Optional[OpenAI] = client
        if self._client is None:
            self._initialize_client()

    def _initialize_client(self) -> None:
        """Initialize OpenAI client with configuration."""
        config = self.config
        if not config.openai_api_key:
            self._client = None
            return

        try:
            http_client = httpx.Client(timeout=config.openai_timeout)
            self._client = OpenAI(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                http_client=http_client,
                max_retries=config.openai_max_retries,
            )
        except Exception as e:
            logger.warning(f"Failed to initialize OpenAI client: {e}")
            self._client = None

    @staticmethod
    def _clean_markdown_response(text: str) -> str:
        """Strip code fences and collapse runs of blank lines."""
        if not text:
            return text
        text = re.sub(r'^```(?:markdown|md)?\s*\n', '', text, flags=re.MULTILINE)
        text = re.sub(r'\n```\s*$', '', text, flags=re.MULTILINE)
        text = text.strip()
        return re.sub(r'\n{3,}', '\n\n', text)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def suggest(self, analysis: Dict[str, Any]) -> Optional[str]:
        """
        Rewrite title/description and propose keyword ideas for an analysed page.

        Returns None when no LLM is configured or the request fails.
        """
        if not self._client:
            return None

        system_prompt = (
            "You are an SEO expert. Given a website analysis, rewrite its title and "
            "description to improve ranking and propose 3 keyword ideas. "
            "Answer in short plain text."
        )
        content = f"Website analysis:\n```json\n{json.dumps(analysis, indent=2, default=str)}\n```"

        try:
            # The OpenAI client is synchronous
            resp = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self.config.openai_model,
                temperature=0.2,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": content},
                ],
            )
            text = resp.choices[0].message.content if resp.choices else None
            return self._clean_markdown_response(text) if text else None
        except Exception as e:
            logger.warning(f"SEO recommendation request failed: {e}")
            return None

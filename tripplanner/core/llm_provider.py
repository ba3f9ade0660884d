from __future__ import annotations

import asyncio
import logging
from typing import Any

import aisuite as ai  # type: ignore
import google.generativeai as genai  # type: ignore

from tripplanner.core.errors import NetworkError
from tripplanner.core.settings import get_settings

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_p": 0.8,
    "top_k": 40,
    "max_output_tokens": 4096,
}


class LLMProvider:
    def __init__(self, model: str | None = None, api_key: str | None = None) -> None:
        settings = get_settings()
        self.model = model or settings.planner_model
        self._client = None
        self._genai_model: Any | None = None

        # Route to google-generativeai if model starts with google-genai:
        if self.model.startswith("google-genai:"):
            key = api_key or settings.google_api_key
            if not key:
                raise RuntimeError("GOOGLE_API_KEY is not set")
            genai.configure(api_key=key)
            model_id = self.model.split(":", 1)[1]
            self._genai_model = genai.GenerativeModel(
                model_id, generation_config=GENERATION_CONFIG
            )
        else:
            try:
                self._client = ai.Client()
            except Exception as exc:  # fail fast if aisuite cannot initialize
                raise RuntimeError("Failed to initialize aisuite client") from exc

    def generate(self, prompt: str) -> str:
        """Send a single-prompt request and return the raw response text."""
        try:
            if self._genai_model is not None:
                response = self._genai_model.generate_content(prompt)
                text = response.text
            else:
                resp = self._client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=GENERATION_CONFIG["temperature"],
                )
                text = resp.choices[0].message.content
        except Exception as exc:
            logger.warning("[Planner] Generative-text request failed: %s", exc)
            raise NetworkError(f"Generative-text request failed: {exc}") from exc

        if not text:
            raise NetworkError("Invalid response format")
        return text

    async def generate_async(self, prompt: str) -> str:
        """Async version of generate. Runs the blocking client in a worker thread."""
        return await asyncio.to_thread(self.generate, prompt)

"""
Summarization engine utility.

Single-turn LLM calls: system prompt + user prompt in, free text out.
"""

import logging
from typing import Dict
import google.generativeai as genai

from src.errors import SummarizationError

logger = logging.getLogger(__name__)


class GeminiSummarizationEngine:
    """
    Summarization engine backed by Gemini.

    One GenerativeModel is kept per distinct system prompt, since Gemini
    takes the system instruction at model construction.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash"
    ):
        """
        Initialize summarization engine.

        Args:
            api_key: Google API key
            model_name: Gemini model to use
        """
        self.model_name = model_name
        self._models: Dict[str, "genai.GenerativeModel"] = {}

        genai.configure(api_key=api_key)

        logger.info(f"Initialized GeminiSummarizationEngine with model={model_name}")

    def _model_for(self, system_prompt: str):
        model = self._models.get(system_prompt)
        if model is None:
            model = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=system_prompt
            )
            self._models[system_prompt] = model
        return model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7
    ) -> str:
        """
        Run one completion.

        Returns:
            Raw response text (expected to contain one JSON object)

        Raises:
            SummarizationError: If the API call fails or returns no text
        """
        model = self._model_for(system_prompt)
        try:
            response = model.generate_content(
                user_prompt,
                generation_config={"temperature": temperature}
            )
            text = response.text
        except Exception as e:
            raise SummarizationError(f"Gemini request failed: {e}") from e

        if not text:
            raise SummarizationError("Gemini returned an empty response")
        return text

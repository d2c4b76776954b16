"""
Summarizer client.

Thin wrapper around Gemini used by the AI-assisted synthesis path.
"""

import logging
from typing import Optional

import google.generativeai as genai

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a helpful assistant that summarizes customer feedback into concise reports with trends and suggested actions.

Rules:
- Output JSON only
- Never quote or repeat raw customer text"""


class GeminiSummarizer:
    """
    Sends prompts to Gemini and returns the raw response text.

    Makes no promise about the structure of the text; callers recover JSON from it.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-1.5-flash",
        temperature: float = 0.0,
        timeout_seconds: int = 30
    ):
        """
        Initialize summarizer client.

        Args:
            api_key: Google API key
            model_name: Gemini model to use
            temperature: LLM temperature (0.0 for deterministic)
            timeout_seconds: Upper bound for a single request
        """
        self.model_name = model_name
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={"temperature": temperature},
            system_instruction=SYSTEM_PROMPT
        )

        logger.info(
            f"Initialized GeminiSummarizer with model={model_name}, "
            f"temp={temperature}, timeout={timeout_seconds}s"
        )

    def summarize(self, prompt: str, max_tokens: int = 800) -> str:
        """
        Send a prompt and return the raw text.

        Args:
            prompt: Full user prompt
            max_tokens: Output token budget

        Returns:
            Raw response text (may be empty)

        Raises:
            Any transport, auth or timeout error from the Gemini client
        """
        response = self.model.generate_content(
            prompt,
            generation_config={
                "temperature": self.temperature,
                "max_output_tokens": max_tokens
            },
            request_options={"timeout": self.timeout_seconds}
        )
        return response.text or ""


def build_summarizer(
    api_key: str,
    model_name: str,
    temperature: float = 0.0,
    timeout_seconds: int = 30
) -> Optional[GeminiSummarizer]:
    """
    Create the process-wide summarizer client.

    Returns:
        GeminiSummarizer, or None when no API key is configured
    """
    if not api_key:
        logger.info("No summarizer credential configured; synthesis will run locally")
        return None
    return GeminiSummarizer(
        api_key=api_key,
        model_name=model_name,
        temperature=temperature,
        timeout_seconds=timeout_seconds
    )

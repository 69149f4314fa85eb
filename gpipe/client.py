import logging
from dataclasses import dataclass
from typing import Optional

import openai
import requests

from gpipe.config import EffectiveSettings

logger = logging.getLogger(__name__)

COMPLETION_FAILED = "Error: Unable to fetch response"
MAX_TOKENS = 150
FETCH_TIMEOUT = 30


@dataclass
class Completion:
    text: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class Fetched:
    url: str
    content: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RemoteClient:
    """Single-message chat completions against an OpenAI compatible API."""

    def __init__(self, settings: EffectiveSettings, openai_client: openai.OpenAI = None):
        self.model = settings.model
        self.openai_client = openai_client or openai.OpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
        )

    def complete(self, message: str, temperature: float) -> Completion:
        """Send one user message. API errors become a failed Completion
        carrying the sentinel text instead of raising."""
        logger.debug(f"Sending message to {self.model} ({len(message)} chars)")
        try:
            response = self.openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": message}],
                max_tokens=MAX_TOKENS,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            logger.error(f"An API error occurred: {e}")
            return Completion(COMPLETION_FAILED, error=str(e))
        content = response.choices[0].message.content or ""
        return Completion(content.strip())


def fetch_url(url: str, session: requests.Session = None) -> Fetched:
    """GET url and return its body, or a placeholder if it can't be read."""
    getter = session or requests
    try:
        response = getter.get(url, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to fetch {url}: {e}")
        return Fetched(url, f"Error: Unable to fetch content from {url}", error=str(e))
    return Fetched(url, response.text)

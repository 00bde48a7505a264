"""Thin wrapper around the OpenAI chat completions API for JSON replies."""
import json
import logging
import os

from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


def get_model() -> str:
    return os.getenv("STADE_MODEL", DEFAULT_MODEL)


def get_client() -> OpenAI:
    """OpenAI client configured from OPENAI_API_KEY (and OPENAI_BASE_URL if set)."""
    base_url = os.getenv("OPENAI_BASE_URL", "").strip() or None
    return OpenAI(base_url=base_url) if base_url else OpenAI()


def complete_json(prompt: str, client: OpenAI | None = None) -> dict:
    """Send a single user prompt and parse the JSON object in the reply."""
    client = client or get_client()
    model = get_model()
    logger.debug("Requesting completion from %s (%d chars)", model, len(prompt))
    response = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
        response_format={"type": "json_object"},
    )
    return json.loads(response.choices[0].message.content)

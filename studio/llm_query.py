import logging

from openai import OpenAI, OpenAIError
from django.conf import settings

from .exceptions import GenerationError

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def query_openrouter(prompt, model_id, max_tokens=2000, temperature=0.7):
    """Send one user prompt to a model through OpenRouter and return the reply text."""
    client = OpenAI(
        api_key=settings.OPENROUTER_API_KEY,
        base_url=OPENROUTER_BASE_URL,
    )

    try:
        response = client.chat.completions.create(
            model=model_id,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except OpenAIError as e:
        raise GenerationError(f"Story generation request to {model_id} failed: {e}") from e

    if response.usage:
        logger.debug(f"{model_id}: {response.usage.prompt_tokens} input tokens, "
                     f"{response.usage.completion_tokens} output tokens")
    return response.choices[0].message.content

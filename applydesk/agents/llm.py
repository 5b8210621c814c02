"""
Chat model access.

Every prompt in ``applydesk.agents`` goes through ``complete`` so the model
and its credentials are configured in one place.
"""

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_deepseek import ChatDeepSeek

from applydesk.config import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """The language model could not produce a usable answer."""


def get_chat_model(temperature: float = 0.3, max_tokens: int = 1000) -> BaseChatModel:
    """Build a chat model for one call."""
    if not settings.deepseek_api_key:
        raise LLMError("DEEPSEEK_API_KEY not set")
    return ChatDeepSeek(
        model=settings.llm_model,
        api_key=settings.deepseek_api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=settings.search_timeout,
    )


def complete(system_prompt: str, user_prompt: str, temperature: float = 0.3, max_tokens: int = 1000) -> str:
    """Run a single system + user exchange and return the text answer."""
    model = get_chat_model(temperature=temperature, max_tokens=max_tokens)
    try:
        response = model.invoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
    except Exception as e:
        logger.error(f"LLM request failed: {e}")
        raise LLMError(f"LLM request failed: {e}") from e

    content = response.content if isinstance(response.content, str) else str(response.content)
    if not content.strip():
        raise LLMError("Empty response from LLM")
    return content

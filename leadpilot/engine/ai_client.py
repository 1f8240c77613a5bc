"""
AI Client - Unified interface for all AI backends.
Supports: Claude API (with optional web search), DeepSeek Chat, DeepSeek Reasoner.

Handlers talk to AIClient.complete(); the blocking SDK/HTTP calls run in a
worker thread so the agent loop stays responsive. Every failure is raised as
AIClientError carrying a classified category for the thought log.
"""

import asyncio
import logging
from typing import List, Optional, Dict, Any

import requests
from anthropic import Anthropic

from leadpilot.config import config

logger = logging.getLogger(__name__)

MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 3}

JSON_INSTRUCTION = "Respond with valid JSON only. No prose, no code fences."


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

ERROR_MESSAGES = {
    'search_unsupported': "Web search is not available for this model or key.",
    'model_not_found': "The configured AI model was not found.",
    'invalid_key': "The AI API key is missing, invalid or unauthorized.",
    'rate_limited': "AI provider rate limit or quota reached.",
    'unsupported_operation': "The AI provider does not support this operation.",
    'other': "AI request failed.",
}


class AIClientError(Exception):
    """AI call failed. `category` is one of ERROR_MESSAGES' keys."""

    def __init__(self, category: str, detail: str = ''):
        self.category = category if category in ERROR_MESSAGES else 'other'
        self.detail = detail
        super().__init__(f"{ERROR_MESSAGES[self.category]} ({detail})" if detail else ERROR_MESSAGES[self.category])

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES[self.category]


def classify_ai_error(error: Exception) -> str:
    """Map a provider exception to a user-facing category by inspecting its message."""
    if isinstance(error, AIClientError):
        return error.category

    text = str(error).lower()
    unsupported = any(s in text for s in ('not supported', 'unsupported', 'not enabled', 'not available'))

    if unsupported and any(s in text for s in ('search', 'grounding', 'web_search')):
        return 'search_unsupported'
    if 'model' in text and any(s in text for s in ('not found', 'not_found', 'does not exist', '404')):
        return 'model_not_found'
    if any(s in text for s in ('api key', 'api_key', 'authentication', 'unauthorized', 'permission', '401', '403')):
        return 'invalid_key'
    if any(s in text for s in ('rate limit', 'rate_limit', '429', 'quota', 'overloaded', 'resource exhausted')):
        return 'rate_limited'
    if unsupported or 'not implemented' in text:
        return 'unsupported_operation'
    return 'other'


# =============================================================================
# CLAUDE CLIENT
# =============================================================================

def call_claude(
    prompt: str,
    system: Optional[str] = None,
    max_tokens: int = 2000,
    tools: Optional[List[Dict[str, Any]]] = None,
) -> str:
    """Call Claude API. Returns the concatenated text blocks of the reply."""
    if not config.ANTHROPIC_API_KEY:
        raise AIClientError('invalid_key', "ANTHROPIC_API_KEY not set in environment")

    client = Anthropic(api_key=config.ANTHROPIC_API_KEY)

    kwargs = {
        'model': config.CLAUDE_MODEL,
        'max_tokens': max_tokens,
        'system': system if system else "You are a sales assistant for a small digital agency.",
        'messages': [{"role": "user", "content": prompt}],
    }
    if tools:
        kwargs['tools'] = tools

    try:
        logger.debug(f"Calling Claude API (tools={bool(tools)})")
        message = client.messages.create(**kwargs)
        return "".join(
            block.text for block in message.content if getattr(block, 'type', 'text') == 'text'
        )

    except Exception as e:
        logger.error(f"Claude API error: {e}")
        raise AIClientError(classify_ai_error(e), f"Failed to call Claude API: {e}") from e


# =============================================================================
# DEEPSEEK CLIENT
# =============================================================================

def call_deepseek(
    prompt: str,
    model: str = 'deepseek-chat',
    system: Optional[str] = None,
    max_tokens: int = 2000,
    json_mode: bool = False,
) -> str:
    """Call DeepSeek API (OpenAI-compatible). Returns generated text."""
    if not config.DEEPSEEK_API_KEY:
        raise AIClientError('invalid_key', "DEEPSEEK_API_KEY not set in environment")

    url = f"{config.DEEPSEEK_BASE_URL}/chat/completions"

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    payload = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "stream": False,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    headers = {
        "Authorization": f"Bearer {config.DEEPSEEK_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        logger.debug(f"Calling DeepSeek API with model {model}")
        response = requests.post(url, json=payload, headers=headers, timeout=(10, 120), verify=True)
        response.raise_for_status()

        result = response.json()
        return result['choices'][0]['message']['content']

    except requests.exceptions.RequestException as e:
        logger.error(f"DeepSeek API error: {e}")
        raise AIClientError(classify_ai_error(e), f"Failed to call DeepSeek API: {e}") from e
    except (KeyError, IndexError) as e:
        logger.error(f"DeepSeek response parse error: {e}")
        raise AIClientError('other', f"Unexpected DeepSeek response format: {e}") from e


# =============================================================================
# UNIFIED ROUTER
# =============================================================================

def call_ai(
    prompt: str,
    model: str,
    system: Optional[str] = None,
    max_tokens: int = 2000,
    tools: Optional[List[Dict[str, Any]]] = None,
    response_format: Optional[str] = None,
) -> str:
    """
    Route an AI call to the appropriate backend.

    Args:
        prompt: User prompt text
        model: One of 'claude', 'deepseek-chat', 'deepseek-reasoner'
        system: Optional system prompt
        max_tokens: Max tokens to generate
        tools: Tool definitions; only Claude supports web search
        response_format: 'json' to ask for a bare JSON reply

    Returns: Generated text
    """
    if response_format == 'json':
        system = f"{system}\n\n{JSON_INSTRUCTION}" if system else JSON_INSTRUCTION

    if model == 'claude':
        return call_claude(prompt, system=system, max_tokens=max_tokens, tools=tools)
    elif model in ('deepseek-chat', 'deepseek-reasoner'):
        if tools:
            raise AIClientError('search_unsupported', f"{model} does not support web search tools")
        return call_deepseek(prompt, model=model, system=system, max_tokens=max_tokens,
                             json_mode=response_format == 'json')
    else:
        raise AIClientError('model_not_found', f"Unknown AI model '{model}'. Choose from: {', '.join(MODEL_CHOICES)}")


class AIClient:
    """
    Async completion capability used by the agent handlers.
    `complete` never returns partial results: it yields text or raises AIClientError.
    """

    def __init__(self, model: Optional[str] = None, system: Optional[str] = None):
        self.model = model or config.DEFAULT_AI_MODEL
        self.system = system

    async def complete(
        self,
        prompt: str,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_format: Optional[str] = None,
        max_tokens: int = 2000,
    ) -> str:
        try:
            return await asyncio.to_thread(
                call_ai, prompt, self.model, self.system, max_tokens, tools, response_format,
            )
        except AIClientError:
            raise
        except Exception as e:
            logger.error(f"AI completion failed: {e}")
            raise AIClientError(classify_ai_error(e), str(e)) from e

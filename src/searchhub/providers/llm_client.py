"""Shared LiteLLM plumbing: API key validation and error translation.

Every provider call in the pipeline routes through litellm. Failures are
translated into the searchhub error taxonomy here so callers can match on
recoverability instead of catching provider-specific exceptions.
"""

from __future__ import annotations

import os
from typing import Any

import litellm

from searchhub.errors import ProviderRequestRejected, TransientProviderError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "voyage": "VOYAGE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "jina_ai": "JINA_AI_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "huggingface": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if bare)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Error translation
# ------------------------------------------------------------------

# Request Timeout and Too Many Requests
_RETRYABLE_4XX = frozenset([408, 429])


def to_provider_error(
    exc: Exception,
    error_cls: type[TransientProviderError],
    model: str,
) -> TransientProviderError | ProviderRequestRejected:
    """Translate a failed provider call into the searchhub taxonomy.

    Rate limits, timeouts, connection failures and 5xx responses map to the
    transient *error_cls*, keeping status and retry-after. Any other 4xx
    (bad key, bad request, unknown model) maps to ProviderRequestRejected.
    """
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int):
        status_code = None
    provider = provider_of(model)

    if isinstance(exc, litellm.Timeout):
        message = f"request timed out: {exc}"
    elif isinstance(exc, litellm.RateLimitError):
        message = f"rate limited: {exc}"
    elif status_code is not None and 400 <= status_code < 500 and status_code not in _RETRYABLE_4XX:
        return ProviderRequestRejected(
            provider, f"{type(exc).__name__}: {exc}", status_code=status_code
        )
    else:
        message = f"{type(exc).__name__}: {exc}"
    return error_cls(
        provider,
        message,
        status_code=status_code,
        retry_after=_retry_after(exc),
    )


def _retry_after(exc: Exception) -> float | None:
    """Return the provider's Retry-After hint in seconds, if present."""
    headers: Any = getattr(exc, "litellm_response_headers", None)
    if headers is None:
        headers = getattr(getattr(exc, "response", None), "headers", None)
    if not headers:
        return None
    try:
        raw = headers.get("retry-after") or headers.get("Retry-After")
    except AttributeError:
        return None
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def field_of(item: Any, name: str, default: Any = None) -> Any:
    """Read *name* from a provider response item (dict or attribute object)."""
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)

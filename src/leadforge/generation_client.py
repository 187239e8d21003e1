# generation_client.py
"""OpenRouter chat-completion client for AI artifact generation."""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import config
from .errors import ErrorCategory, RemoteGenerationError, category_for_status
from .logging_utils import get_logger

SYSTEM_PROMPT = (
    "You are an expert web developer and designer creating modern, beautiful websites."
)


class AIModels:
    """Model identifiers available through the gateway."""

    # Primary models
    CLAUDE_OPUS_4_1 = "anthropic/claude-opus-4.1"
    CLAUDE_SONNET_4 = "anthropic/claude-sonnet-4"
    GEMINI_2_5_PRO = "google/gemini-2.5-pro"
    GEMINI_2_5_FLASH = "google/gemini-2.5-flash"

    # Fallback models
    CLAUDE_3_5_SONNET = "anthropic/claude-3-5-sonnet-20241022"
    GEMINI_2_0_PRO = "google/gemini-2.0-pro-exp"
    GPT_4O = "openai/gpt-4o"
    GPT_4O_MINI = "openai/gpt-4o-mini"

    # Specialized models
    LLAMA_3_1_405B = "meta-llama/llama-3.1-405b-instruct"
    MISTRAL_LARGE = "mistralai/mistral-large"
    QWEN_2_5_72B = "qwen/qwen-2.5-72b-instruct"


MODEL_INFO: Dict[str, Dict[str, Any]] = {
    AIModels.CLAUDE_OPUS_4_1: {
        "name": "Claude Opus 4.1",
        "strengths": ["Complex reasoning", "Long context", "Structured output"],
        "context": 200000,
        "best_for": "architecture",
    },
    AIModels.CLAUDE_SONNET_4: {
        "name": "Claude Sonnet 4",
        "strengths": ["Code generation", "Fast response", "Modern patterns"],
        "context": 200000,
        "best_for": "coding",
    },
    AIModels.GEMINI_2_5_PRO: {
        "name": "Gemini 2.5 Pro",
        "strengths": ["Creative design", "Visual understanding", "Innovation"],
        "context": 2000000,
        "best_for": "design",
    },
    AIModels.GEMINI_2_5_FLASH: {
        "name": "Gemini 2.5 Flash",
        "strengths": ["Speed", "Optimization", "Quick iterations"],
        "context": 1000000,
        "best_for": "optimization",
    },
    AIModels.GPT_4O: {
        "name": "GPT-4o",
        "strengths": ["General purpose", "Understanding context", "Versatility"],
        "context": 128000,
        "best_for": "general",
    },
}

# Task category -> model. A configuration table, not a decision procedure.
TASK_MODELS: Dict[str, str] = {
    "structure": AIModels.CLAUDE_OPUS_4_1,
    "design": AIModels.GEMINI_2_5_PRO,
    "code": AIModels.CLAUDE_SONNET_4,
    "content": AIModels.GEMINI_2_5_PRO,
    "optimization": AIModels.GEMINI_2_5_FLASH,
}


def select_model_for_task(task: str) -> str:
    """Return the model id configured for a task category.

    Raises:
        ValueError: If the task category is unknown.
    """
    try:
        return TASK_MODELS[task]
    except KeyError:
        raise ValueError(
            f"Unknown task category '{task}'. Expected one of: {', '.join(TASK_MODELS)}"
        ) from None


def optimize_prompt_for_model(prompt: str, model: str) -> str:
    """Frame a prompt the way each model family responds to best."""
    if "claude" in model:
        return (
            "Please provide a detailed, well-structured response.\n\n"
            f"{prompt}\n\n"
            "Please ensure your response is comprehensive and follows best practices."
        )
    if "gemini" in model:
        return (
            "Be creative and innovative in your approach.\n\n"
            f"{prompt}\n\n"
            "Feel free to explore unique and modern solutions."
        )
    if "gpt" in model:
        return f"Instructions: {prompt}\n\nPlease provide a clear, actionable response."
    return prompt


@dataclass
class GenerationOptions:
    """Sampling options sent with every completion request."""

    temperature: float = 0.7
    max_tokens: int = 4000
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


class GenerationClient:
    """OpenRouter REST client.

    One request per call: this layer never retries. Model fallback, when
    requested, is delegated to the gateway through its ``route: fallback``
    option.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        referer: Optional[str] = None,
        site_name: Optional[str] = None,
        fallback_model: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
        max_workers: int = 4,
    ):
        """Initialize the generation client.

        Args:
            api_key: Gateway credential. Defaults to OPENROUTER_API_KEY.
            base_url: Gateway base URL. Defaults to config value.
            referer: Value of the HTTP-Referer header.
            site_name: Value of the X-Title header.
            fallback_model: Alternate model used by the gateway on failure.
            timeout: Request timeout in seconds.
            session: Pre-built requests session (tests inject a mock).
            max_workers: Thread pool size for multi-model batches.
        """
        self.logger = get_logger(__name__)

        self.api_key = api_key if api_key is not None else config.OPENROUTER_API_KEY
        self.base_url = (base_url or config.OPENROUTER_BASE_URL).rstrip("/")
        self.referer = referer or config.OPENROUTER_REFERER
        self.site_name = site_name or config.OPENROUTER_SITE_NAME
        self.fallback_model = fallback_model or config.OPENROUTER_FALLBACK_MODEL
        self.timeout = timeout or config.GENERATION_TIMEOUT_SECONDS
        self.max_workers = max_workers

        self._session = session

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_session(self) -> requests.Session:
        """Get or create a requests session with automatic retries disabled."""
        if self._session is None:
            self._session = requests.Session()
            adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)
        return self._session

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        key = api_key or self.api_key
        if not key:
            raise RemoteGenerationError(
                "OPENROUTER_API_KEY is required for AI generation",
                category=category_for_status(401),
            )
        return {
            "Authorization": f"Bearer {key}",
            "HTTP-Referer": self.referer,
            "X-Title": self.site_name,
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        prompt: str,
        model: str,
        options: Optional[GenerationOptions],
        fallback_models: Optional[List[str]] = None,
        stream: bool = False,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            **(options or GenerationOptions()).to_payload(),
            "stream": stream,
        }
        if fallback_models:
            payload["models"] = [model] + [m for m in fallback_models if m != model]
            payload["route"] = "fallback"
        return payload

    def _raise_for_response(self, response: requests.Response, model: str) -> None:
        if response.ok:
            return
        message = "OpenRouter API error"
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
        except ValueError:
            pass
        raise RemoteGenerationError(
            message,
            category=category_for_status(response.status_code),
            status_code=response.status_code,
            context={"model": model},
        )

    def generate(
        self,
        prompt: str,
        model: str,
        options: Optional[GenerationOptions] = None,
        api_key: Optional[str] = None,
        fallback_models: Optional[List[str]] = None,
    ) -> str:
        """Send one chat completion request and return the response text.

        Args:
            prompt: User prompt.
            model: Model identifier.
            options: Sampling options, defaults applied when omitted.
            api_key: Per-call credential overriding the configured one.
            fallback_models: Models the gateway may switch to if ``model`` fails.

        Returns:
            The assistant's message content, or "" when the gateway returned none.

        Raises:
            RemoteGenerationError: On a non-success response or transport failure.
        """
        headers = self._headers(api_key)
        payload = self._payload(prompt, model, options, fallback_models)

        self.logger.debug(
            "Making generation request",
            extra={"model": model, "max_tokens": payload["max_tokens"]},
        )

        try:
            response = self._get_session().post(
                self.completions_url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.logger.error(f"Generation request failed for {model}: {e}")
            raise RemoteGenerationError(
                f"Network error calling OpenRouter: {e}",
                category=ErrorCategory.NETWORK,
                context={"model": model},
            ) from e

        self._raise_for_response(response, model)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteGenerationError(
                f"Invalid JSON from OpenRouter: {e}", context={"model": model}
            ) from e

        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") or ""

        self.logger.debug(
            "Generation request completed",
            extra={"model": data.get("model", model), "usage": data.get("usage", {})},
        )
        return content

    def generate_with_fallback(
        self,
        prompt: str,
        model: str,
        options: Optional[GenerationOptions] = None,
        api_key: Optional[str] = None,
    ) -> str:
        """Generate with the configured fallback model as the gateway's alternate."""
        return self.generate(
            prompt,
            model,
            options=options,
            api_key=api_key,
            fallback_models=[self.fallback_model],
        )

    def generate_with_multiple_models(
        self,
        prompt: str,
        models: List[str],
        options: Optional[GenerationOptions] = None,
        api_key: Optional[str] = None,
    ) -> Dict[str, str]:
        """Run the same prompt against several models concurrently.

        Failed or empty results are left out of the mapping: a missing key
        means that model produced nothing. This call never raises for a
        per-model failure.

        Returns:
            Mapping of model id to generated text.
        """
        if not models:
            return {}

        def run(model: str) -> str:
            try:
                return self.generate(prompt, model, options=options, api_key=api_key)
            except Exception as e:
                self.logger.warning(f"Failed with model {model}: {e}")
                return ""

        workers = max(1, min(self.max_workers, len(models)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outputs = list(executor.map(run, models))

        results = {model: text for model, text in zip(models, outputs) if text}
        self.logger.info(
            "Multi-model generation finished: %d/%d models returned content",
            len(results),
            len(models),
        )
        return results

    def stream(
        self,
        prompt: str,
        model: str,
        on_chunk: Callable[[str], None],
        options: Optional[GenerationOptions] = None,
        api_key: Optional[str] = None,
    ) -> str:
        """Stream a completion, calling ``on_chunk`` for each content delta.

        The stream ends at the ``[DONE]`` sentinel or when the connection
        closes. Lines that are not valid JSON are skipped.

        Returns:
            The accumulated text.

        Raises:
            RemoteGenerationError: If the stream cannot be opened.
        """
        headers = self._headers(api_key)
        payload = self._payload(prompt, model, options, stream=True)

        try:
            response = self._get_session().post(
                self.completions_url,
                headers=headers,
                json=payload,
                timeout=self.timeout,
                stream=True,
            )
        except requests.RequestException as e:
            raise RemoteGenerationError(
                f"Network error opening stream: {e}",
                category=ErrorCategory.NETWORK,
                context={"model": model},
            ) from e

        self._raise_for_response(response, model)

        parts: List[str] = []
        try:
            # SSE is always UTF-8, whatever charset the headers imply
            for raw in response.iter_lines():
                line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                if not line or not line.startswith("data: "):
                    continue
                data = line[len("data: "):].strip()
                if data == "[DONE]":
                    break
                try:
                    parsed = json.loads(data)
                    content = parsed["choices"][0].get("delta", {}).get("content")
                except (ValueError, KeyError, IndexError, TypeError, AttributeError):
                    continue
                if content:
                    parts.append(content)
                    on_chunk(content)
        finally:
            response.close()

        return "".join(parts)

    def get_usage_stats(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "fallback_model": self.fallback_model,
            "has_api_key": bool(self.api_key),
        }

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            self._session.close()
            self._session = None
            self.logger.debug("Generation client session closed")

    def __enter__(self) -> "GenerationClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

"""
LLM client for the local OpenAI-compatible model runtime
"""

import asyncio
import json
import logging
import time
import urllib.parse
from typing import Any, Dict, List, Optional

import openai
import requests

from ..errors import ModelNotReady
from ..models import ModelStatus

DEFAULT_BASE_URL = "http://127.0.0.1:11434/v1"


def normalize_llm_base_url(base_url: Optional[str]) -> str:
    """
    Normalise a model endpoint to an OpenAI-compatible ``.../v1`` base URL.

    Args:
        base_url: User supplied URL (None selects the default local runtime)

    Returns:
        Base URL without a trailing slash, ending in ``/v1``
    """
    url = (base_url or DEFAULT_BASE_URL).strip().rstrip('/')
    if not url.endswith('/v1'):
        url = f"{url}/v1"
    return url


def runtime_host(base_url: str) -> str:
    """Strip the OpenAI-compatible path, leaving scheme://host:port."""
    parsed = urllib.parse.urlparse(base_url)
    return f"{parsed.scheme}://{parsed.netloc}"


class LLMClient:
    """
    Client for the local model runtime's OpenAI-compatible API.
    Handles retries and error handling.
    """

    def __init__(self, api_key: str, model: str, base_url: str, timeout: float = 120.0, max_retries: int = 3):
        """
        Initialize LLM client.

        Args:
            api_key: API key expected by the runtime (local runtimes accept any value)
            model: Model to use for completions
            base_url: OpenAI-compatible base URL of the local runtime
            timeout: Request timeout in seconds
            max_retries: Retries for rate limiting and server errors
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_retries = max_retries
        self.logger = logging.getLogger("brevskriver.llm_client")

        # SDK retries are disabled; _make_api_call_with_retry owns the policy
        self.client = openai.OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def list_models(self) -> List[str]:
        """Return the model identifiers installed in the runtime."""
        return [model.id for model in self.client.models.list()]

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Create a chat completion.

        Args:
            messages: List of message dictionaries with 'role' and 'content'
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens in response
            **kwargs: Additional parameters for the API call

        Returns:
            Response content as string

        Raises:
            Exception: If API call fails after retries
        """
        try:
            api_params = {
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "stream": False,
                **kwargs
            }

            if max_tokens:
                api_params["max_tokens"] = max_tokens

            self.logger.debug(f"Making API call with {len(messages)} messages")

            response = self._make_api_call_with_retry(api_params)

            if hasattr(response, 'choices') and len(response.choices) > 0:
                content = response.choices[0].message.content or ""
            else:
                content = str(response)

            if content.strip().lower().startswith(('<!doctype html', '<html')):
                raise ValueError("Received HTML instead of text from the model endpoint. Check llm_base_url.")

            usage = getattr(response, 'usage', None)
            if usage is not None:
                self.logger.debug(f"Token usage - Prompt: {usage.prompt_tokens}, "
                                  f"Completion: {usage.completion_tokens}, "
                                  f"Total: {usage.total_tokens}")

            return content

        except Exception as e:
            self.logger.error(f"Chat completion failed: {str(e)}")
            raise

    def _make_api_call_with_retry(self, api_params: Dict[str, Any]) -> Any:
        """
        Make API call with exponential backoff retry logic.

        Args:
            api_params: Parameters for the API call

        Returns:
            API response object

        Raises:
            Exception: If all retry attempts fail
        """
        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                return self.client.chat.completions.create(**api_params)

            except openai.RateLimitError as e:
                last_exception = e
                if attempt < self.max_retries:
                    wait_time = (2 ** attempt) + 1
                    self.logger.warning(f"Runtime busy, waiting {wait_time}s before retry {attempt + 1}")
                    time.sleep(wait_time)
                    continue
                self.logger.error("Runtime busy, max retries reached")
                raise

            except openai.APIStatusError as e:
                last_exception = e
                if attempt < self.max_retries and e.status_code >= 500:
                    wait_time = (2 ** attempt) + 1
                    self.logger.warning(f"API error {e.status_code}, retrying in {wait_time}s")
                    time.sleep(wait_time)
                    continue
                self.logger.error(f"API error: {str(e)}")
                raise

        raise last_exception


class LocalModelService:
    """
    Model service backed by a local runtime (Ollama, llama.cpp server, LM Studio).

    Exposes ``init``, a readable ``status`` and ``complete``. Blocking SDK
    calls run in a worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: str = "local",
        *,
        auto_pull: bool = True,
        temperature: float = 0.3,
        max_retries: int = 3,
        timeout: float = 120.0,
        client: Optional[LLMClient] = None,
    ):
        self.base_url = normalize_llm_base_url(base_url)
        self.api_key = api_key
        self.auto_pull = auto_pull
        self.temperature = temperature
        self.max_retries = max_retries
        self.timeout = timeout
        self.logger = logging.getLogger("brevskriver.model_service")

        self._client = client
        self._model: Optional[str] = None
        self._init_future: Optional[asyncio.Future] = None
        self._status = ModelStatus()

    @property
    def status(self) -> ModelStatus:
        return self._status

    @property
    def model(self) -> Optional[str]:
        return self._model

    async def init(self, model_identifier: str) -> None:
        """
        Load the model, reporting progress through ``status``.

        Calling it again once ready, or while a load is running, does not
        start a second load.
        """
        if self._status.ready:
            self.logger.debug(f"Model {self._model} already initialized")
            return

        if self._init_future is None or (self._init_future.done() and self._init_future.exception()):
            self._init_future = asyncio.ensure_future(self._initialize(model_identifier))

        await asyncio.shield(self._init_future)

    async def complete(self, system_instructions: str, user_instructions: str) -> str:
        if not self._status.ready or self._client is None:
            raise ModelNotReady()

        messages = [
            {"role": "system", "content": system_instructions},
            {"role": "user", "content": user_instructions},
        ]
        return await asyncio.to_thread(
            self._client.chat_completion,
            messages=messages,
            temperature=self.temperature,
        )

    async def _initialize(self, model_identifier: str) -> None:
        self._set_status(False, 0.0, f"Connecting to local model runtime at {self.base_url}")
        try:
            client = self._client or LLMClient(
                api_key=self.api_key,
                model=model_identifier,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
            installed = await asyncio.to_thread(client.list_models)

            if not self._is_installed(model_identifier, installed):
                if not self.auto_pull:
                    raise ModelNotReady(
                        f"Model {model_identifier} is not installed in the local runtime"
                    )
                await asyncio.to_thread(self._pull_model, model_identifier)

            self._client = client
            self._model = model_identifier
            self._set_status(True, 1.0, f"Model {model_identifier} ready")
            self.logger.info(f"Local model {model_identifier} ready")

        except Exception as e:
            self._set_status(False, self._status.progress, f"Model load failed: {str(e)}")
            self.logger.error(f"Failed to initialize model {model_identifier}: {str(e)}")
            raise

    def _is_installed(self, model_identifier: str, installed: List[str]) -> bool:
        if model_identifier in installed:
            return True
        # Runtimes report untagged names with an implicit ``:latest``
        return ":" not in model_identifier and f"{model_identifier}:latest" in installed

    def _pull_model(self, model_identifier: str) -> None:
        """
        Download the model through the runtime's pull endpoint, streaming progress.
        """
        url = f"{runtime_host(self.base_url)}/api/pull"
        self.logger.info(f"Pulling model {model_identifier} from local runtime")

        with requests.post(
            url,
            json={"model": model_identifier, "stream": True},
            stream=True,
            timeout=self.timeout,
        ) as response:
            response.raise_for_status()
            for raw_line in response.iter_lines():
                if not raw_line:
                    continue
                event = json.loads(raw_line)
                if event.get("error"):
                    raise RuntimeError(event["error"])

                total = event.get("total") or 0
                completed = event.get("completed") or 0
                progress = min(completed / total, 1.0) if total else self._status.progress
                self._set_status(False, progress, str(event.get("status", "")))

    def _set_status(self, ready: bool, progress: float, message: str) -> None:
        self._status = ModelStatus(ready=ready, progress=max(0.0, min(float(progress), 1.0)), message=message)

import json
import asyncio
import time
from typing import Dict, Any, Optional, List, Tuple
import httpx
from filing_intake.config import settings
import logging

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    pass


class LLMClient:
    def __init__(self, provider: Optional[str] = None):
        """
        Initialize LLM client.

        Args:
            provider: Optional provider override. If not specified, uses the configured provider.
        """
        self._refresh_config(provider)

    def _refresh_config(self, provider: Optional[str] = None) -> None:
        """Refresh configuration from settings."""
        use_provider = provider or settings.llm_provider
        config = settings.get_llm_config(use_provider)

        self.provider = config["provider"]
        self.base_url = config["base_url"].rstrip('/')
        self.model = config["model"]
        self.timeout = config["timeout"]
        self.max_retries = max(1, config["max_retries"])
        self.max_tokens = config.get("max_tokens", 2048)

        logger.info(f"LLMClient configured with provider: {self.provider}, base_url: {self.base_url}, model: {self.model}")

    def _generate_curl_command(self, url: str, payload: Dict[str, Any]) -> str:
        """Generate curl command equivalent of the HTTP request."""
        json_payload = json.dumps(payload, indent=2)
        return f"curl -X POST '{url}' \\\n  -H 'Content-Type: application/json' \\\n  -d '{json_payload}'"

    def _get_api_url(self) -> str:
        """Get the API endpoint URL based on the provider."""
        if self.provider == "vllm":
            return f"{self.base_url}/v1/chat/completions"
        else:  # ollama
            return f"{self.base_url}/api/chat"

    def _normalize_messages(self, messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
        """
        Normalize messages for the provider.
        vLLM requires user/assistant alternation, so system content is folded into the first user message.
        """
        if self.provider != "vllm":
            return messages

        system_parts = [msg["content"] for msg in messages if msg["role"] == "system"]
        rest = [msg for msg in messages if msg["role"] != "system"]
        if not system_parts:
            return rest
        system_content = "\n\n".join(system_parts)
        if rest and rest[0]["role"] == "user":
            return [{"role": "user", "content": f"{system_content}\n\n{rest[0]['content']}"}] + rest[1:]
        return [{"role": "user", "content": system_content}] + rest

    def _build_request_payload(self, messages: List[Dict[str, str]], temperature: float = 0.1) -> Dict[str, Any]:
        """Build the request payload based on the provider."""
        normalized_messages = self._normalize_messages(messages)

        if self.provider == "vllm":
            # OpenAI-compatible format for vLLM
            return {
                "model": self.model,
                "messages": normalized_messages,
                "temperature": temperature,
                "max_tokens": self.max_tokens,
                "top_p": 0.9,
            }
        else:  # ollama
            return {
                "model": self.model,
                "messages": normalized_messages,
                "stream": False,
                "options": {
                    "temperature": temperature,
                    "num_predict": self.max_tokens,
                    "top_p": 0.9
                }
            }

    def _extract_response_content(self, data: Dict[str, Any]) -> str:
        """Extract the response content based on the provider."""
        if self.provider == "vllm":
            # OpenAI-compatible format
            if "choices" not in data or not data["choices"]:
                raise LLMClientError("Invalid response format from vLLM")
            choice = data["choices"][0]
            if "message" not in choice or "content" not in choice["message"]:
                raise LLMClientError("Invalid response format from vLLM")
            return choice["message"]["content"]
        else:  # ollama
            if "message" not in data or "content" not in data["message"]:
                raise LLMClientError("Invalid response format from Ollama")
            return data["message"]["content"]

    async def _make_request(self, messages: List[Dict[str, str]], temperature: float = 0.1) -> Tuple[str, float]:
        """Make a request to the LLM API with retries. Returns (response_text, duration_seconds)."""
        url = self._get_api_url()
        payload = self._build_request_payload(messages, temperature)

        prompt_length = sum(len(msg.get("content", "")) for msg in messages)
        logger.info(f"LLM Request: provider={self.provider}, model={self.model}, prompt_length={prompt_length}")
        logger.debug(f"LLM Request (curl equivalent):\n{self._generate_curl_command(url, payload)}")

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload)
                    response.raise_for_status()
                    duration = time.time() - start_time

                    response_content = self._extract_response_content(response.json())

                    logger.info(f"LLM Response: provider={self.provider}, model={self.model}, latency_ms={int(duration * 1000)}, response_length={len(response_content)}")
                    logger.debug(f"LLM Response content: {response_content[:500]}{'...' if len(response_content) > 500 else ''}")

                    return response_content, duration

            except httpx.TimeoutException:
                logger.warning(f"LLM request timeout (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise LLMClientError("LLM request timed out")
                await asyncio.sleep(1)

            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    raise LLMClientError(f"Model '{self.model}' not found on {self.provider} server")
                elif e.response.status_code == 400:
                    # Client errors are not fixed by retrying
                    raise LLMClientError(f"LLM request rejected (400): {e.response.text}")
                logger.warning(f"LLM HTTP error {e.response.status_code} (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise LLMClientError(f"LLM HTTP error {e.response.status_code}")
                await asyncio.sleep(1)

            except LLMClientError:
                raise

            except Exception as e:
                logger.error(f"LLM request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt == self.max_retries - 1:
                    raise LLMClientError(f"LLM request failed: {e}")
                await asyncio.sleep(1)

        raise LLMClientError("Max retries exceeded")

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, temperature: float = 0.1) -> str:
        """Send one prompt and return the raw completion text."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response_text, _ = await self._make_request(messages, temperature=temperature)
        return response_text

    async def check_health(self) -> bool:
        """Check if the LLM provider is reachable and model is available."""
        try:
            if self.provider == "vllm":
                # vLLM uses OpenAI-compatible /v1/models endpoint
                url = f"{self.base_url}/v1/models"
                async with httpx.AsyncClient(timeout=5.0) as client:
                    response = await client.get(url)
                    response.raise_for_status()

                    data = response.json()
                    model_ids = [model.get("id") for model in data.get("data", [])]

                    logger.info(f"vLLM available models: {model_ids}")
                    return self.model in model_ids
            else:
                # Ollama uses /api/tags endpoint
                url = f"{self.base_url}/api/tags"
                async with httpx.AsyncClient(timeout=5.0) as client:
                    response = await client.get(url)
                    response.raise_for_status()

                    data = response.json()
                    model_names = [model.get("name") for model in data.get("models", [])]

                    logger.info(f"Ollama available models: {model_names}")
                    return self.model in model_names

        except Exception as e:
            logger.error(f"{self.provider} health check failed: {e}")
            return False

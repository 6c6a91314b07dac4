"""
Reasoning service client with provider abstraction.

Retries are not handled here: callers inject their own retry policy and classify
the ReasoningServiceError raised on every failed call.
"""
import os
import requests
from typing import Optional, Dict, Any


class ReasoningServiceError(Exception):
    """A failed reasoning call, carrying enough context to classify the failure."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "", timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.body = body or ""
        self.timed_out = timed_out


class ReasoningClient:
    """Unified client for JSON-only reasoning calls (OpenAI-compatible gateway, Anthropic, local Ollama)."""

    def __init__(self, ai_config: Dict[str, Any]):
        self.ai_config = ai_config
        self.provider = (ai_config.get("service") or "gateway").lower()
        self.timeout = ai_config.get("timeout", 120)
        self.max_tokens = ai_config.get("max_tokens", 4096)
        self.temperature = ai_config.get("temperature", 0.2)

    def call(self, prompt: str, system_prompt: str = "", image_base64: Optional[str] = None,
             mime_type: str = "image/jpeg") -> Dict[str, Any]:
        """
        Send one prompt (optionally with an embedded image) and request a JSON response.
        Returns: {"text": str, "tokens": int}
        Raises: ReasoningServiceError on any transport or non-2xx failure.
        """
        try:
            if self.provider == "gateway":
                return self._call_gateway(prompt, system_prompt, image_base64, mime_type)
            elif self.provider == "anthropic":
                return self._call_anthropic(prompt, system_prompt, image_base64, mime_type)
            elif self.provider == "ollama":
                return self._call_ollama(prompt, system_prompt, image_base64)
            else:
                raise ValueError(f"Unknown provider: {self.provider}")
        except requests.Timeout as e:
            raise ReasoningServiceError(f"Reasoning call timed out after {self.timeout}s", timed_out=True) from e
        except requests.RequestException as e:
            raise ReasoningServiceError(f"Reasoning call failed: {e}") from e

    def _raise_for_status(self, resp: requests.Response) -> None:
        if resp.status_code >= 400:
            raise ReasoningServiceError(
                f"Reasoning service returned status {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text[:2000],
            )

    def _call_gateway(self, prompt: str, system_prompt: str, image_base64: Optional[str],
                      mime_type: str) -> Dict[str, Any]:
        """Call an OpenAI-compatible chat completions endpoint."""
        gateway = self.ai_config["gateway"]
        api_key = gateway.get("api_key") or os.getenv("EVIDENCE_GATEWAY_API_KEY")
        if not api_key:
            raise ReasoningServiceError("Gateway API key not configured")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }

        if image_base64:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
            ]
        else:
            content = prompt

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})

        payload = {
            "model": gateway["model"],
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }

        resp = requests.post(
            f"{gateway['base_url'].rstrip('/')}/chat/completions",
            headers=headers,
            json=payload,
            timeout=self.timeout
        )
        self._raise_for_status(resp)
        data = resp.json()

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ReasoningServiceError("Malformed gateway response", status_code=resp.status_code) from e
        tokens = (data.get("usage") or {}).get("total_tokens", 0)

        return {"text": text or "", "tokens": tokens}

    def _call_anthropic(self, prompt: str, system_prompt: str, image_base64: Optional[str],
                        mime_type: str) -> Dict[str, Any]:
        """Call Anthropic messages API."""
        anthropic = self.ai_config["anthropic"]
        if not anthropic.get("api_key"):
            raise ReasoningServiceError("ANTHROPIC_API_KEY not set")

        headers = {
            "x-api-key": anthropic["api_key"],
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json"
        }

        content = []
        if image_base64:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": mime_type, "data": image_base64},
            })
        content.append({"type": "text", "text": prompt})

        payload = {
            "model": anthropic["model"],
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": content}],
            "temperature": self.temperature
        }
        if system_prompt:
            payload["system"] = system_prompt

        resp = requests.post(
            "https://api.anthropic.com/v1/messages",
            headers=headers,
            json=payload,
            timeout=self.timeout
        )
        self._raise_for_status(resp)
        data = resp.json()

        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ReasoningServiceError("Malformed Anthropic response", status_code=resp.status_code) from e
        usage = data.get("usage") or {}
        tokens = usage.get("input_tokens", 0) + usage.get("output_tokens", 0)

        return {"text": text, "tokens": tokens}

    def _call_ollama(self, prompt: str, system_prompt: str, image_base64: Optional[str]) -> Dict[str, Any]:
        """Call local Ollama instance."""
        ollama = self.ai_config["ollama"]
        payload = {
            "model": ollama["model"],
            "prompt": prompt,
            "system": system_prompt,
            "stream": False,
            "format": "json",
            "options": {
                "num_predict": self.max_tokens,
                "temperature": self.temperature
            }
        }
        if image_base64:
            payload["images"] = [image_base64]

        resp = requests.post(
            f"{ollama['base_url'].rstrip('/')}/api/generate",
            json=payload,
            timeout=self.timeout
        )
        self._raise_for_status(resp)
        data = resp.json()

        return {"text": data.get("response", ""), "tokens": data.get("eval_count", 0)}

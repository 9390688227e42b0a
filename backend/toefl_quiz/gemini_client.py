from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional, Protocol
from .settings import settings


logger = logging.getLogger(__name__)


def describe_error(exc: Optional[BaseException]) -> str:
	"""Loggable summary of a provider error: type and HTTP status, never the request URL."""
	if exc is None:
		return "unknown error"
	if isinstance(exc, httpx.HTTPStatusError):
		return f"{type(exc).__name__} (HTTP {exc.response.status_code})"
	return type(exc).__name__


class AIClient(Protocol):
	async def generate(self, prompt: str, *, system: Optional[str] = None, json_mode: bool = False) -> str: ...

	async def aclose(self) -> None: ...


class GeminiClient:
	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		self.temperature = settings.gemini_temperature
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
		self._client = httpx.AsyncClient(timeout=settings.ai_attempt_timeout_seconds)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=settings.ai_attempt_timeout_seconds)

	def _build_payload(self, prompt: str, *, system: Optional[str], json_mode: bool) -> Dict[str, Any]:
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
		if system:
			payload["systemInstruction"] = {"parts": [{"text": system}]}
		generation_config: Dict[str, Any] = {"temperature": self.temperature}
		if json_mode:
			generation_config["responseMimeType"] = "application/json"
		payload["generationConfig"] = generation_config
		return payload

	async def generate(self, prompt: str, *, system: Optional[str] = None, json_mode: bool = False) -> str:
		payload = self._build_payload(prompt, system=system, json_mode=json_mode)
		# Key travels as a header on both providers so it never appears in a URL
		headers = {"x-goog-api-key": self.api_key}
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				data = r.json()
				text = data["candidates"][0]["content"]["parts"][0]["text"]
			except Exception:
				last_error = RuntimeError(f"Unexpected Gemini response: {r.text[:200]}")
			else:
				if not text:
					last_error = RuntimeError("No content in Gemini response")
				else:
					return text
		if not self._fallback_enabled:
			raise last_error
		logger.warning("Gemini call failed (%s); falling back to OpenRouter", describe_error(last_error))
		return await self._fallback_generate(prompt, system, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, prompt: str, system: Optional[str], primary_error: Optional[Exception]) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		messages: List[Dict[str, str]] = []
		if system:
			messages.append({"role": "system", "content": system})
		messages.append({"role": "user", "content": prompt})
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
			"temperature": self.temperature,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			content = data["choices"][0]["message"]["content"]
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"Gemini primary call failed ({describe_error(primary_error)}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err
		if not content:
			raise RuntimeError("No content in OpenRouter response")
		return content

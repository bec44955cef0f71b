from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .settings import settings

log = logging.getLogger(__name__)


class AIProviderError(RuntimeError):
	"""The text-generation provider failed or answered with an unusable payload."""

	def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.status_code = status_code


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise AIProviderError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=settings.ai_timeout_seconds, transport=transport)
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
			self._fallback_client = httpx.AsyncClient(timeout=settings.ai_timeout_seconds, transport=transport)

	async def generate(
		self,
		prompt: str,
		*,
		temperature: Optional[float] = None,
		max_output_tokens: Optional[int] = None,
	) -> str:
		generation_config: Dict[str, Any] = {
			"temperature": settings.ai_temperature if temperature is None else temperature,
			"maxOutputTokens": max_output_tokens or settings.ai_max_output_tokens,
		}
		payload: Dict[str, Any] = {
			"contents": [{"role": "user", "parts": [{"text": prompt}]}],
			"generationConfig": generation_config,
		}
		try:
			return await self._post_payload(payload)
		except AIProviderError as primary_error:
			if not self._fallback_enabled:
				raise
			log.warning("Gemini call failed (%s); trying OpenRouter fallback", primary_error)
			return await self._fallback_generate(prompt, primary_error, generation_config)

	async def _post_payload(self, payload: Dict[str, Any]) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			raise AIProviderError(
				f"Gemini request failed with {http_err.response.status_code}: {http_err.response.text}",
				status_code=http_err.response.status_code,
			) from http_err
		except httpx.RequestError as net_err:
			raise AIProviderError(f"Gemini request error: {net_err}") from net_err
		try:
			data = r.json()
			candidate = data["candidates"][0]
			parts = candidate["content"]["parts"]
		except (ValueError, KeyError, IndexError, TypeError) as err:
			raise AIProviderError(f"Unexpected Gemini response: {r.text}") from err
		text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
		if not text.strip() and candidate.get("finishReason") == "SAFETY":
			raise AIProviderError("Gemini response blocked by safety filters")
		return text

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(
		self,
		prompt: str,
		primary_error: AIProviderError,
		generation_config: Dict[str, Any],
	) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": [{"role": "user", "content": prompt}],
			"temperature": generation_config["temperature"],
			"max_tokens": generation_config["maxOutputTokens"],
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"] or ""
		except Exception as fallback_err:
			raise AIProviderError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed",
				status_code=primary_error.status_code,
			) from fallback_err


async def get_ai_client():
	"""FastAPI dependency yielding a client that is closed after the request."""
	client = GeminiClient()
	try:
		yield client
	finally:
		await client.aclose()

"""
Proveedores LLM usados por la extracción y la redacción de mensajes.

Cada proveedor recibe un LLMRequest y devuelve un LLMResponse con el
texto ya recortado. get_llm_provider() arma el proveedor configurado y,
si hay modelo de respaldo, lo envuelve en un FallbackProvider que
reintenta la misma request con el modelo más chico.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from immoalert.config import Settings, get_settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class LLMRequest:
    system_prompt: str
    user_prompt: str
    temperature: float = 0.2
    max_tokens: int = 1024
    json_output: bool = False


@dataclass
class LLMResponse:
    """Respuesta normalizada de cualquier LLM."""
    text: str
    model: str
    provider: str
    tokens_used: Optional[int] = None


class BaseLLMProvider(ABC):
    """Un modelo concreto de un proveedor."""

    provider_name: str = "base"
    model: str = ""

    @abstractmethod
    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Ejecuta la request; cualquier error del SDK se propaga."""

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        json_output: bool = False,
    ) -> LLMResponse:
        return await self.complete(
            LLMRequest(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                json_output=json_output,
            )
        )


class GroqProvider(BaseLLMProvider):
    """Chat completions de Groq (modo JSON nativo)."""

    provider_name = "groq"

    def __init__(self, api_key: str, model: str):
        from groq import AsyncGroq

        self.model = model
        self._client = AsyncGroq(api_key=api_key)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        kwargs = {}
        if request.json_output:
            kwargs["response_format"] = {"type": "json_object"}

        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            **kwargs,
        )

        usage = completion.usage
        return LLMResponse(
            text=(completion.choices[0].message.content or "").strip(),
            model=self.model,
            provider=self.provider_name,
            tokens_used=usage.total_tokens if usage else None,
        )


class GeminiProvider(BaseLLMProvider):
    """Google Gemini vía google-genai; el system prompt va como system_instruction."""

    provider_name = "gemini"

    def __init__(self, api_key: str, model: str):
        from google import genai

        self.model = model
        self._client = genai.Client(api_key=api_key)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        from google.genai import types

        config = types.GenerateContentConfig(
            system_instruction=request.system_prompt,
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
            response_mime_type="application/json" if request.json_output else None,
        )
        result = await self._client.aio.models.generate_content(
            model=self.model, contents=request.user_prompt, config=config
        )

        usage = result.usage_metadata
        return LLMResponse(
            text=(result.text or "").strip(),
            model=self.model,
            provider=self.provider_name,
            tokens_used=usage.total_token_count if usage else None,
        )


class FallbackProvider(BaseLLMProvider):
    """
    Prueba el modelo principal y, si falla o responde vacío, el de respaldo.

    El error del respaldo es el que se propaga.
    """

    def __init__(self, primary: BaseLLMProvider, fallback: BaseLLMProvider):
        self.primary = primary
        self.fallback = fallback
        self.provider_name = primary.provider_name
        self.model = primary.model

    async def complete(self, request: LLMRequest) -> LLMResponse:
        try:
            response = await self.primary.complete(request)
            if response.text:
                return response
            logger.warning("Respuesta vacía del modelo principal", model=self.primary.model)
        except Exception as e:
            logger.warning(
                "Modelo principal falló, usando respaldo",
                model=self.primary.model,
                fallback=self.fallback.model,
                error=str(e),
            )
        return await self.fallback.complete(request)


_PROVIDERS = {"groq": GroqProvider, "gemini": GeminiProvider}


def get_llm_provider(settings: Optional[Settings] = None) -> BaseLLMProvider:
    """
    Arma el proveedor configurado en settings.

    Raises:
        ValueError: Si falta la API key del proveedor elegido
    """
    settings = settings or get_settings()
    name = settings.llm_provider

    api_key = getattr(settings, f"{name}_api_key")
    if not api_key:
        raise ValueError(f"{name.upper()}_API_KEY no configurada")

    provider_cls = _PROVIDERS[name]
    primary = provider_cls(api_key=api_key, model=getattr(settings, f"{name}_model"))
    fallback_model = getattr(settings, f"{name}_fallback_model")

    logger.info("Proveedor LLM inicializado", provider=name, model=primary.model, fallback=fallback_model)
    if not fallback_model or fallback_model == primary.model:
        return primary
    return FallbackProvider(primary, provider_cls(api_key=api_key, model=fallback_model))

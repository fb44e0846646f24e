"""
Módulo de análisis con IA.

Extracción de datos de anuncios y redacción de mensajes con LLM (Gemini/Groq).
"""

from immoalert.analysis.extractor import (
    ExtractionResult,
    ListingExtractor,
    normalize_extraction,
    parse_extraction_response,
)
from immoalert.analysis.message_writer import MessageWriter, build_listing_message
from immoalert.analysis.llm_providers import (
    get_llm_provider,
    BaseLLMProvider,
    FallbackProvider,
    GeminiProvider,
    GroqProvider,
    LLMRequest,
    LLMResponse,
)

__all__ = [
    # Extracción
    "ListingExtractor",
    "ExtractionResult",
    "normalize_extraction",
    "parse_extraction_response",
    # Mensajes
    "MessageWriter",
    "build_listing_message",
    # Proveedores LLM
    "get_llm_provider",
    "BaseLLMProvider",
    "FallbackProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMRequest",
    "LLMResponse",
]

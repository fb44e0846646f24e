"""
Extractor de datos estructurados de anuncios con LLM.

Convierte el texto libre de un post de Facebook en precio, ubicación,
superficie, piezas, tipo de propiedad y una confianza global.

Nunca lanza excepciones hacia el llamador: respuestas malformadas,
timeouts o errores del proveedor se degradan a confidence=0.
"""

import asyncio
import json
from dataclasses import asdict, dataclass
from typing import Any, Optional

import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from immoalert.analysis.json_repair import clean_llm_json
from immoalert.analysis.llm_providers import BaseLLMProvider, get_llm_provider
from immoalert.config import get_settings
from immoalert.exceptions import ExtractionError
from immoalert.models import PropertyType

logger = structlog.get_logger()

EXTRACTION_SYSTEM_PROMPT = """Tu es un expert de l'immobilier en Afrique francophone.
Tu analyses des annonces publiées dans des groupes Facebook et tu en extrais les
informations structurées. Les prix sont en Francs CFA (FCFA).
Réponds UNIQUEMENT avec un objet JSON valide, sans texte autour."""

EXTRACTION_USER_PROMPT_TEMPLATE = """Analyse cette annonce immobilière et extrait les informations structurées.

Texte de l'annonce:
\"\"\"
{text}
\"\"\"

Retourne UNIQUEMENT un JSON valide avec ce format exact:
{{
  "title": "titre de l'annonce (max 100 caractères)",
  "price": nombre entier du prix en FCFA (null si non trouvé),
  "location": "ville et/ou quartier précis",
  "surface": nombre entier en m² (null si non trouvé),
  "rooms": nombre de pièces (null si non trouvé),
  "propertyType": "HOUSE" | "APARTMENT" | "BOTH" | null,
  "contact": "téléphone ou email trouvé",
  "furnished": true | false | null,
  "description": "résumé de 2-3 phrases",
  "confidence": nombre entre 0 et 1 représentant la confiance globale
}}

Règles:
- Pour le prix: extraire uniquement le nombre, sans symboles
- Pour propertyType: "HOUSE" pour maison/villa, "APARTMENT" pour appartement/studio
- Pour furnished: true si meublé, false si non meublé, null si non précisé
- confidence doit refléter la qualité des données extraites
- Si le texte n'est pas une annonce immobilière, confidence doit être proche de 0"""

MAX_TEXT_LENGTH = 4000


@dataclass
class ExtractionResult:
    """Datos extraídos de un anuncio."""

    confidence: float = 0.0
    title: Optional[str] = None
    price: Optional[int] = None
    location: Optional[str] = None
    surface: Optional[int] = None
    rooms: Optional[int] = None
    property_type: Optional[PropertyType] = None
    contact: Optional[str] = None
    furnished: Optional[bool] = None
    description: Optional[str] = None

    @classmethod
    def failed(cls) -> "ExtractionResult":
        """Resultado degradado para respuestas inválidas o errores."""
        return cls(confidence=0.0)

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.property_type is not None:
            data["property_type"] = self.property_type.value
        return data


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return round(value) if value > 0 else None


def _clean_str(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    return value[:max_length] if max_length else value


def normalize_extraction(data: Any) -> ExtractionResult:
    """
    Valida y normaliza el JSON devuelto por el LLM.

    Números no positivos o con tipo incorrecto se descartan, el tipo de
    propiedad se limita al enum y la confianza se acota a [0, 1].
    """
    if not isinstance(data, dict):
        return ExtractionResult.failed()

    raw_type = data.get("propertyType", data.get("property_type"))
    try:
        property_type = PropertyType(raw_type) if raw_type else None
    except ValueError:
        property_type = None

    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.0

    furnished = data.get("furnished")

    return ExtractionResult(
        confidence=max(0.0, min(1.0, float(confidence))),
        title=_clean_str(data.get("title"), 100),
        price=_positive_int(data.get("price")),
        location=_clean_str(data.get("location")),
        surface=_positive_int(data.get("surface")),
        rooms=_positive_int(data.get("rooms")),
        property_type=property_type,
        contact=_clean_str(data.get("contact")),
        furnished=furnished if isinstance(furnished, bool) else None,
        description=_clean_str(data.get("description")),
    )


def parse_extraction_response(raw_text: str) -> ExtractionResult:
    """Parsea la respuesta cruda del LLM; JSON inválido -> confidence=0."""
    if not raw_text or not raw_text.strip():
        return ExtractionResult.failed()
    try:
        data = json.loads(clean_llm_json(raw_text))
    except json.JSONDecodeError as e:
        logger.warning(
            "Respuesta de extracción no es JSON válido",
            error=str(e),
            response=raw_text[:300],
        )
        return ExtractionResult.failed()
    return normalize_extraction(data)


class ListingExtractor:
    """
    Extrae datos estructurados de anuncios usando LLM (Gemini o Groq).
    """

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self._provider = provider
        self.timeout_seconds = timeout_seconds or settings.extraction_timeout_seconds

    @property
    def provider(self) -> BaseLLMProvider:
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _request(self, raw_text: str) -> str:
        try:
            response = await self.provider.generate(
                system_prompt=EXTRACTION_SYSTEM_PROMPT,
                user_prompt=EXTRACTION_USER_PROMPT_TEMPLATE.format(
                    text=raw_text[:MAX_TEXT_LENGTH]
                ),
                temperature=0.1,
                max_tokens=600,
                json_output=True,
            )
        except Exception as e:
            raise ExtractionError(str(e)) from e
        return response.text

    async def extract(self, raw_text: str) -> ExtractionResult:
        """
        Extrae los datos de un anuncio.

        Args:
            raw_text: Texto original del post

        Returns:
            ExtractionResult (confidence=0 si la extracción falló)
        """
        if not raw_text or not raw_text.strip():
            return ExtractionResult.failed()

        try:
            raw_response = await asyncio.wait_for(
                self._request(raw_text), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Timeout en extracción", timeout=self.timeout_seconds)
            return ExtractionResult.failed()
        except (ExtractionError, ValueError) as e:
            logger.error("Error en extracción con LLM", error=str(e))
            return ExtractionResult.failed()

        return parse_extraction_response(raw_response)

"""
Parsers del texto libre de la conversación.

Funciones puras: devuelven None cuando el texto no se entiende, y el
motor vuelve a preguntar el mismo paso.
"""

import math
import re
from enum import Enum
from typing import Optional, Union

from immoalert.models import PropertyType


class Skip(Enum):
    """El usuario no tiene preferencia para el paso."""

    SKIP = "skip"


SKIP = Skip.SKIP

HOUSE_KEYWORDS = ("maison", "house", "villa")
APARTMENT_KEYWORDS = ("appartement", "appart", "apartment", "studio")
BOTH_KEYWORDS = ("deux", "both", "tout")

MAX_KEYWORDS = ("max",)
SKIP_KEYWORDS = ("pas", "ignore", "peu", "aucun", "indifférent", "indifferent")

MIN_PRICE_RATIO = 0.6
MIN_LOCATION_LENGTH = 3

# "250000", "250 000", "250.000" o "1 250 000" son un solo número
_NUMBER_RE = re.compile(r"\d{1,3}(?:[ .\u00a0\u202f]\d{3})+(?!\d)|\d+")
_LOCATION_SPLIT_RE = re.compile(r"[,;/\-]")
# Palabras completas: "peut-être" no es "peu"
_SKIP_RE = re.compile(r"\b(?:" + "|".join(map(re.escape, SKIP_KEYWORDS)) + r")\b")

# Vocabulario de comandos (palabra exacta, sin distinguir mayúsculas)
CHANGE_COMMANDS = frozenset({"modifier", "change", "critères", "criteres"})
STATUS_COMMANDS = frozenset({"statut", "status"})
HELP_COMMANDS = frozenset({"aide", "help"})
PAUSE_COMMANDS = frozenset({"pause", "stop"})
RESUME_COMMANDS = frozenset({"reprendre", "resume", "start"})
CONFIRM_COMMANDS = frozenset({"oui", "yes", "ok", "parfait"})
REJECT_COMMANDS = frozenset({"non", "no", "modifier", "change"})


def normalize_command(text: str) -> str:
    """'  Oui ! ' -> 'oui'."""
    return text.strip().lower().rstrip(".!?,;: ").strip()


def parse_property_type(text: str) -> Optional[PropertyType]:
    lowered = text.lower()
    if any(keyword in lowered for keyword in HOUSE_KEYWORDS):
        return PropertyType.HOUSE
    if any(keyword in lowered for keyword in APARTMENT_KEYWORDS):
        return PropertyType.APARTMENT
    if any(keyword in lowered for keyword in BOTH_KEYWORDS):
        return PropertyType.BOTH
    return None


def extract_numbers(text: str) -> list[int]:
    """Números enteros positivos del texto, respetando separadores de miles."""
    numbers = []
    for token in _NUMBER_RE.findall(text):
        value = int(re.sub(r"\D", "", token))
        if value > 0:
            numbers.append(value)
    return numbers


def parse_price_range(text: str) -> Optional[tuple[int, int]]:
    """
    Rango de precio (min, max).

    - Un número con "max": (0, n)
    - Un número solo: (floor(0.6 * n), n)
    - Dos o más: (menor, mayor)
    - Ninguno: None
    """
    numbers = extract_numbers(text)
    if not numbers:
        return None

    if len(numbers) == 1:
        value = numbers[0]
        if any(keyword in text.lower() for keyword in MAX_KEYWORDS):
            return 0, value
        return math.floor(value * MIN_PRICE_RATIO), value

    return min(numbers), max(numbers)


def parse_locations(text: str) -> list[str]:
    parts = (part.strip() for part in _LOCATION_SPLIT_RE.split(text))
    return [part for part in parts if len(part) >= MIN_LOCATION_LENGTH]


def parse_optional_int(text: str) -> Union[int, Skip, None]:
    """
    Mínimo de piezas o superficie.

    Returns:
        SKIP si el texto indica que no importa, el primer entero si hay
        uno, None si no se entiende
    """
    lowered = text.lower()
    if _SKIP_RE.search(lowered):
        return SKIP

    match = re.search(r"\d+", text)
    return int(match.group()) if match else None

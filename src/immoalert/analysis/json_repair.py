"""
Limpieza de respuestas JSON de LLMs.

Los modelos chicos a veces devuelven el JSON envuelto en markdown,
con comentarios // o con comas faltantes entre propiedades.
"""

import re


def strip_code_fences(text: str) -> str:
    """Quita bloques ```json ... ``` si los hay."""
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
            if text.startswith("json"):
                text = text[4:]
    return text.strip()


def fix_json(text: str) -> str:
    """Elimina comentarios // y agrega comas faltantes entre propiedades."""
    cleaned_lines = []
    for line in text.split("\n"):
        if "//" in line:
            pos = line.find("//")
            before = line[:pos]
            quote_count = before.count('"') - before.count('\\"')
            if quote_count % 2 == 0:
                # No está dentro de un string
                line = before.rstrip()
        cleaned_lines.append(line)

    text = "\n".join(cleaned_lines)

    text = re.sub(r'(\d+\.?\d*)\s*\n(\s*")', r"\1,\n\2", text)
    text = re.sub(r'(")\s*\n(\s*")', r"\1,\n\2", text)
    text = re.sub(r'(true|false|null)\s*\n(\s*")', r"\1,\n\2", text)
    text = re.sub(r'(\}|\])\s*\n(\s*")', r"\1,\n\2", text)

    return text


def extract_json_object(text: str) -> str:
    """Recorta al primer objeto {...} del texto, si hay texto alrededor."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return text
    return text[start:end + 1]


def clean_llm_json(raw_text: str) -> str:
    """Aplica toda la limpieza antes de json.loads."""
    return fix_json(extract_json_object(strip_code_fences(raw_text)))

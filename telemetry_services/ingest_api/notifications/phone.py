"""Normalización de teléfonos a E.164 para SMS."""

from __future__ import annotations

import re

_NON_E164 = re.compile(r"[^+\d]")


def to_e164(raw: str, default_country_code: str = "82") -> str:
    """Normaliza un teléfono a E.164.

    - "+82 10-1234-5678" → "+821012345678" (solo se quitan separadores)
    - "010-1234-5678"    → "+821012345678" (número nacional: se quita el 0 inicial)
    - "821012345678"     → "+821012345678"

    Raises:
        ValueError: si no quedan dígitos suficientes.
    """
    if not isinstance(raw, str):
        raise ValueError("teléfono inválido")

    cleaned = _NON_E164.sub("", raw.strip())
    if cleaned.startswith("+"):
        digits = cleaned[1:].replace("+", "")
    else:
        digits = cleaned.replace("+", "")
        if digits.startswith("0"):
            digits = default_country_code + digits[1:]

    if len(digits) < 8 or len(digits) > 15:
        raise ValueError(f"teléfono inválido: {raw!r}")

    return "+" + digits

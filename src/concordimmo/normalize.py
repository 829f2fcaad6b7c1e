"""Normalisation de texte, de documents (CPF/CNPJ) et de valeurs numériques."""

from __future__ import annotations

import math
import re
import unicodedata
from typing import Any


def _is_missing(s: Any) -> bool:
    return s is None or (isinstance(s, float) and (s != s or math.isinf(s)))


def _remove_diacritics(s: str) -> str:
    """Retire les diacritiques (accents) d'une chaîne."""
    nfd = unicodedata.normalize("NFD", s)
    return "".join(c for c in nfd if unicodedata.category(c) != "Mn")


def norm_text(
    s: str | float | int | None,
    *,
    lower: bool = True,
    strip: bool = True,
    remove_diacritics: bool = False,
) -> str:
    """
    Normalise un texte : NFKC, espaces multiples → espace simple, lower, strip.

    Args:
        s: Valeur à normaliser (convertie en str si numérique).
        lower: Mettre en minuscules.
        strip: Supprimer espaces en début/fin.
        remove_diacritics: Supprimer les accents.

    Returns:
        Chaîne normalisée.
    """
    if _is_missing(s):
        return ""
    text = str(s).strip() if strip else str(s)
    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text)
    if strip:
        text = text.strip()
    if lower:
        text = text.lower()
    if remove_diacritics:
        text = _remove_diacritics(text)
    return text


def norm_document(s: str | float | int | None) -> str:
    """
    Normalise un numéro de document fiscal (CPF/CNPJ) : ne garde que les chiffres.

    "123.456.789-09" et "12345678909" donnent la même clé.
    """
    if _is_missing(s):
        return ""
    return re.sub(r"\D", "", str(s))


def clean_str(val: Any) -> str | None:
    """Chaîne nettoyée ou None si vide/absente."""
    if _is_missing(val):
        return None
    text = str(val).strip()
    return text or None


def clean_float(val: Any) -> float | None:
    """
    Convertit une valeur en float, None si absente ou mal formée.

    Accepte la virgule décimale ("120,5") des saisies terrain.
    """
    if _is_missing(val) or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    text = str(val).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        num = float(text)
    except ValueError:
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def clean_int(val: Any) -> int | None:
    """Comme clean_float, tronqué en entier."""
    num = clean_float(val)
    return int(num) if num is not None else None


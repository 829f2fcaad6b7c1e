"""Primitives de similarité : distance, proximité numérique, chaînes, documents.

Fonctions pures, sans dépendance vers le reste du moteur.
"""

from __future__ import annotations

import math

from rapidfuzz import fuzz

from concordimmo.normalize import norm_document, norm_text

EARTH_RADIUS_KM = 6371.0


def distance_km(p1: tuple[float, float], p2: tuple[float, float]) -> float:
    """Distance orthodromique (haversine) entre deux points (lat, lon) en degrés."""
    lat1, lon1 = p1
    lat2, lon2 = p2
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def proximity_score(dist_km: float, radius_km: float) -> float:
    """
    Score de proximité : 1 à distance nulle, décroît linéairement, 0 au-delà du rayon.

    Toujours dans [0, 1].
    """
    if radius_km <= 0 or math.isnan(dist_km):
        return 0.0
    return min(1.0, max(0.0, 1.0 - dist_km / radius_km))


def numeric_proximity(a: float | None, b: float | None) -> float | None:
    """
    Proximité relative de deux nombres : 1 - |a-b| / max(a, b), borné à 0.

    Returns:
        Score dans [0, 1], ou None si une valeur manque ou si max(a, b) == 0
        (le critère est alors ignoré).
    """
    if a is None or b is None:
        return None
    largest = max(a, b)
    if largest == 0:
        return None
    if a == b:
        return 1.0
    return min(1.0, max(0.0, 1.0 - abs(a - b) / largest))


def string_similarity(s1: str, s2: str) -> float:
    """
    Similarité par recouvrement de caractères.

    Après normalisation (minuscules, strip, espaces repliés), 1 si égales ;
    sinon nombre de caractères de la plus courte présents n'importe où dans la
    plus longue, divisé par la longueur de la plus longue.

    Heuristique volontairement peu coûteuse et insensible à l'ordre : deux
    anagrammes obtiennent 1.0. Voir token_set_similarity.
    """
    a = norm_text(s1)
    b = norm_text(s2)
    if a == b:
        return 1.0
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    matches = sum(1 for ch in shorter if ch in longer)
    return matches / len(longer)


def token_set_similarity(s1: str, s2: str) -> float:
    """Similarité par ensembles de mots (rapidfuzz token_set_ratio), dans [0, 1]."""
    a = norm_text(s1)
    b = norm_text(s2)
    if a == b:
        return 1.0
    return float(fuzz.token_set_ratio(a, b)) / 100.0


STRING_METHODS = {
    "char_overlap": string_similarity,
    "token_set": token_set_similarity,
}


def documents_equal(d1: str | None, d2: str | None) -> bool:
    """Compare deux documents (CPF/CNPJ) sur leurs seuls chiffres."""
    a = norm_document(d1)
    b = norm_document(d2)
    return bool(a) and a == b

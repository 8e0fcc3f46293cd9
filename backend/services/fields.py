from __future__ import annotations

from typing import Any


def first_populated(*candidates: Any, default: Any = None) -> Any:
    """
    Résolution par précédence explicite : renvoie la première valeur
    renseignée (ni None, ni chaîne vide), dans l'ordre donné.

        first_populated(payload.source_name, payload.dealer_name, stored.source_name)
    """
    for value in candidates:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return default


def first_defined(*candidates: Any, default: Any = None) -> Any:
    """Comme first_populated, mais 0 / "" sont des valeurs valides (champs numériques)."""
    for value in candidates:
        if value is not None:
            return value
    return default

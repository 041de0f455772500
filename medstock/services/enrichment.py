"""
Drug-label enrichment.

Looks a medicine name up on the openFDA drug label endpoint and builds a
short description from the first matching label. Any failure yields None:
the caller keeps its draft description.
"""

from __future__ import annotations

from typing import Any, Protocol

import requests

from medstock.app.config import Settings
from medstock.app.db.models.models_v1 import DESCRIPTION_MAX_LENGTH
from medstock.app.utils.logging import get_logger

logger = get_logger(__name__)

LABEL_SECTIONS = ("description", "purpose", "contraindications", "indications_and_usage")


class Enricher(Protocol):
    def describe(self, name: str) -> str | None:
        ...


class NullEnricher:
    def describe(self, name: str) -> str | None:
        return None


def _first(values: Any) -> str | None:
    if isinstance(values, list) and values:
        first = values[0]
        return first if isinstance(first, str) else None
    return None


def description_from_labels(name: str, payload: dict[str, Any]) -> str | None:
    """
    Pick the first result whose brand names contain `name` (case-insensitive)
    and join the first entry of each label section with ". ".
    """
    if not isinstance(payload, dict):
        return None
    wanted = name.casefold()
    for result in payload.get("results") or []:
        if not isinstance(result, dict):
            continue
        brands = (result.get("openfda") or {}).get("brand_name") or []
        if not any(isinstance(b, str) and b.casefold() == wanted for b in brands):
            continue
        parts = [_first(result.get(section)) for section in LABEL_SECTIONS]
        text = ". ".join(p for p in parts if p)
        return text[:DESCRIPTION_MAX_LENGTH] or None
    return None


class OpenFDAEnricher:
    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float = 2.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def describe(self, name: str) -> str | None:
        params = {"search": name}
        if self.api_key:
            params["api_key"] = self.api_key
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return description_from_labels(name, response.json())
        except (requests.RequestException, ValueError) as e:
            logger.warning("enrichment_failed", medicine=name, error=str(e))
            return None


def build_enricher(settings: Settings) -> Enricher:
    if not settings.openfda_enabled or not settings.openfda_url:
        return NullEnricher()
    return OpenFDAEnricher(
        settings.openfda_url,
        api_key=settings.openfda_api_key,
        timeout=settings.openfda_timeout,
    )

"""
Wine resolver: turns a spoken wine reference into catalog matches.

Resolution policy:
    1. An exact catalog id always wins, even if a name would match
       another wine.
    2. Otherwise a case-insensitive substring match on the wine name;
       only when no name matches, the same match on the winery.
    3. Candidates are ordered by ascending retail price (unpriced last,
       ties by id). The first candidate is the best match; ambiguity is
       reported but never surfaced to the shopper.

Search applies caller constraints as simple post-filters over the active
catalog and caps the result at five wines.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sommelier.gateways.catalog import CatalogGateway, price_order_key
from sommelier.schemas.tool_schema import SearchWinesParams
from sommelier.schemas.wine_schema import CatalogWine

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 5


class ResolutionStatus(str, Enum):
    NOT_FOUND = "not_found"
    FOUND = "found"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class ResolutionResult:
    status: ResolutionStatus
    candidates: list[CatalogWine] = field(default_factory=list)

    @property
    def wine(self) -> Optional[CatalogWine]:
        """Best match: the first candidate in price order."""
        return self.candidates[0] if self.candidates else None

    @classmethod
    def from_candidates(cls, candidates: list[CatalogWine]) -> "ResolutionResult":
        if not candidates:
            return cls(ResolutionStatus.NOT_FOUND)
        if len(candidates) == 1:
            return cls(ResolutionStatus.FOUND, candidates)
        return cls(ResolutionStatus.AMBIGUOUS, candidates)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def matches_filters(wine: CatalogWine, filters: SearchWinesParams) -> bool:
    """True when ``wine`` satisfies every constraint given in ``filters``."""
    for attr in ("country", "region", "style", "grape_variety"):
        wanted = getattr(filters, attr)
        if wanted and not _contains(getattr(wine, attr), wanted.lower()):
            return False

    wine_type = filters.effective_wine_type
    if wine_type is not None and wine.wine_type != wine_type:
        return False

    if filters.min_price is not None or filters.max_price is not None:
        if wine.retail_price is None:
            return False
        if filters.max_price is not None and wine.retail_price > filters.max_price:
            return False
        if filters.min_price is not None and wine.retail_price < filters.min_price:
            return False
    return True


class WineResolver:
    def __init__(self, catalog: CatalogGateway) -> None:
        self._catalog = catalog

    async def resolve(
        self,
        by_id: Optional[int] = None,
        by_name: Optional[str] = None,
        in_stock_only: bool = False,
    ) -> ResolutionResult:
        """Resolve a wine by catalog id (preferred) or by spoken name."""
        if by_id is not None:
            wine = await self._catalog.wine_by_id(by_id)
            if wine is not None and (wine.in_stock or not in_stock_only):
                return ResolutionResult(ResolutionStatus.FOUND, [wine])
            if not by_name:
                return ResolutionResult(ResolutionStatus.NOT_FOUND)
            logger.debug("Wine id %s not found, falling back to name", by_id)

        needle = (by_name or "").strip().lower()
        if not needle:
            return ResolutionResult(ResolutionStatus.NOT_FOUND)

        wines = await self._catalog.active_wines()
        if in_stock_only:
            wines = [w for w in wines if w.in_stock]

        candidates = [w for w in wines if _contains(w.name, needle)]
        if not candidates:
            candidates = [w for w in wines if _contains(w.winery, needle)]
        candidates.sort(key=price_order_key)

        result = ResolutionResult.from_candidates(candidates)
        if result.status is ResolutionStatus.AMBIGUOUS:
            logger.info(
                "Name %r matched %d wines, picking cheapest (id=%s)",
                by_name, len(candidates), candidates[0].id,
            )
        return result

    async def search(
        self, filters: SearchWinesParams, limit: int = MAX_SEARCH_RESULTS
    ) -> list[CatalogWine]:
        """Active wines matching every filter, cheapest first, at most five."""
        limit = max(0, min(limit, MAX_SEARCH_RESULTS))
        wines = await self._catalog.active_wines()
        matched = sorted(
            (w for w in wines if w.is_active and matches_filters(w, filters)),
            key=price_order_key,
        )
        return matched[:limit]

"""Pydantic models for catalog hits, suggestions and API payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SortOrder = Literal["featured", "price_asc", "price_desc"]


class ResultItem(BaseModel):
    """A single hit as returned by the search index."""

    # The catalog export stores some SKUs as numbers.
    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)

    object_id: str
    sku: Optional[str] = None
    title: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    moto_name: List[str] | str | None = None
    score: Optional[float] = None
    highlight: Dict[str, List[str]] = Field(default_factory=dict)

    @property
    def identifier(self) -> str:
        """Stable catalog key; several index rows may share it."""
        return self.sku or self.object_id


class SearchOptions(BaseModel):
    attributes_to_retrieve: Optional[List[str]] = None
    distinct: bool = True
    hits_per_page: int = 16
    page: int = 0
    filters: Dict[str, Any] = Field(default_factory=dict)
    sort: SortOrder = "featured"
    facets: bool = False


class FacetValue(BaseModel):
    value: str
    count: int


class PriceStats(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class SearchPage(BaseModel):
    query: str
    hits: List[ResultItem]
    nb_hits: int = 0
    page: int = 0
    hits_per_page: int = 16
    took_ms: float = 0
    facets: Dict[str, List[FacetValue]] = Field(default_factory=dict)
    price_stats: Optional[PriceStats] = None
    relaxed: bool = False


class RemoteSummary(BaseModel):
    object_id: str
    sku: Optional[str] = None
    title: Optional[str] = None
    brand: Optional[str] = None


class SuggestionItem(BaseModel):
    source: Literal["remote", "recall"]
    text: str
    payload: RemoteSummary | str | None = None

    @classmethod
    def from_hit(cls, hit: ResultItem) -> "SuggestionItem":
        summary = RemoteSummary(object_id=hit.object_id, sku=hit.sku, title=hit.title, brand=hit.brand)
        return cls(source="remote", text=hit.title or hit.identifier, payload=summary)

    @classmethod
    def from_recall(cls, entry: str) -> "SuggestionItem":
        return cls(source="recall", text=entry, payload=entry)


class SuggestionsResponse(BaseModel):
    query: str
    suggestions: List[SuggestionItem]
    count: int


class AcceptRequest(BaseModel):
    query: str = Field(..., description="Query the user committed")


class RecentSearchesResponse(BaseModel):
    searches: List[str]


class CompatibilityResponse(BaseModel):
    sku: str
    query: str = ""
    names: List[str]
    total: int
    fit_available: bool


class ResultView(BaseModel):
    object_id: str
    sku: Optional[str] = None
    title: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    breadcrumb: str = ""
    snippet: str = ""
    price_label: str
    availability: Literal["in_stock", "out_of_stock", "unknown"]
    status: Optional[str] = None
    action: Literal["add_to_cart", "view_product"]
    link_available: bool


class SearchResponse(BaseModel):
    query: str
    results: List[ResultView]
    nb_hits: int
    page: int
    hits_per_page: int
    facets: Dict[str, List[FacetValue]] = Field(default_factory=dict)
    price_stats: Optional[PriceStats] = None
    took_ms: float

"""
CoinShop - Search Schemas
"""

from pydantic import BaseModel, ConfigDict

from coinshop.schemas.product import ProductResponse


class FacetBucketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: str
    label: str
    count: int


class FacetsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    categories: list[FacetBucketResponse]
    metal_types: list[FacetBucketResponse]
    grades: list[FacetBucketResponse]
    certifications: list[FacetBucketResponse]
    price_ranges: list[FacetBucketResponse]
    years: list[FacetBucketResponse]


class SearchResponse(BaseModel):
    products: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    facets: FacetsResponse


class SuggestionsResponse(BaseModel):
    query: str
    suggestions: list[str]
    trending: bool

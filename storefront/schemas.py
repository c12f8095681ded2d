from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import CURRENCY_CODE


class CamelModel(BaseModel):
    # Wire and storage shape is camelCase; Python attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="json", by_alias=True)
        doc.pop("_id", None)
        return doc


class Source(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


# ---------------------------------------------------------
# Canonical catalog shapes
# ---------------------------------------------------------
class Money(CamelModel):
    amount: str = "0"
    currency_code: str = CURRENCY_CODE

class Variant(CamelModel):
    id: str
    title: str = ""
    price: Money = Field(default_factory=Money)
    compare_at_price: Optional[Money] = None
    sku: str = ""
    stock_quantity: Optional[int] = None
    available_for_sale: bool = True

class VariantEdge(CamelModel):
    node: Variant

class VariantConnection(CamelModel):
    edges: List[VariantEdge] = Field(default_factory=list)


class Image(CamelModel):
    url: str
    alt_text: Optional[str] = None

class ImageEdge(CamelModel):
    node: Image

class ImageConnection(CamelModel):
    edges: List[ImageEdge] = Field(default_factory=list)


class CollectionRef(CamelModel):
    id: str = ""
    title: str = ""
    handle: str = ""

class CollectionEdge(CamelModel):
    node: CollectionRef

class CollectionConnection(CamelModel):
    edges: List[CollectionEdge] = Field(default_factory=list)


class Product(CamelModel):
    storage_id: Optional[str] = Field(None, alias="_id")
    id: str
    title: str = ""
    description: str = ""
    handle: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: List[str] = Field(default_factory=list)
    variants: VariantConnection = Field(default_factory=VariantConnection)
    images: ImageConnection = Field(default_factory=ImageConnection)
    collections: CollectionConnection = Field(default_factory=CollectionConnection)
    source: Source = Source.LOCAL
    is_shopify_product: bool = False
    is_custom: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def default_variant(self) -> Optional[Variant]:
        return self.variants.edges[0].node if self.variants.edges else None


class Collection(CamelModel):
    storage_id: Optional[str] = Field(None, alias="_id")
    id: str
    title: str = ""
    handle: str = ""
    description: str = ""
    source: Source = Source.LOCAL
    is_shopify_collection: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------
# Requests
# ---------------------------------------------------------
CollectionInput = Union[str, Dict[str, Any]]
ImageInput = Union[str, Dict[str, Any]]


class VariantInput(CamelModel):
    # Admin forms post prices as either strings or numbers
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    title: Optional[str] = None
    price: Optional[str] = None
    compare_at_price: Optional[str] = None
    sku: Optional[str] = None
    stock_quantity: int = 0


class ProductCreate(VariantInput):
    # Missing titles are reported as a 400 by the write layer, not a 422
    description: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: List[str] = Field(default_factory=list)
    collections: List[CollectionInput] = Field(default_factory=list)
    images: List[ImageInput] = Field(default_factory=list)
    # Variant form posted to the same endpoint
    is_variant: bool = False
    parent_product_id: Optional[str] = None


class ProductUpdate(CamelModel):
    title: Optional[str] = None
    description: str = ""
    vendor: str = ""
    product_type: str = ""
    tags: List[str] = Field(default_factory=list)
    collections: List[CollectionInput] = Field(default_factory=list)
    variants: Union[List[Dict[str, Any]], Dict[str, Any], None] = None
    stock_quantity: Optional[int] = None


class CollectionCreate(CamelModel):
    title: Optional[str] = None


class CatalogFilter(CamelModel):
    title: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    availability: Optional[str] = None  # "in_stock" | "out_of_stock"
    collection: Optional[str] = None  # collection id or handle
    created_after: Optional[str] = None
    created_before: Optional[str] = None
    updated_after: Optional[str] = None
    updated_before: Optional[str] = None
    sort_by: Optional[str] = None
    page: int = 1
    per_page: Optional[int] = None


# ---------------------------------------------------------
# Responses
# ---------------------------------------------------------
class CatalogPage(CamelModel):
    products: List[Product]
    tags: List[str]
    vendors: List[str]
    product_types: List[str] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 1


class ProductsResponse(CamelModel):
    products: List[Product]


class CollectionsResponse(CamelModel):
    collections: List[Collection]


class SyncResponse(CamelModel):
    success: bool = True
    collections_processed: int
    products_processed: int

"""
shopify_client.py
Storefront GraphQL client for the remote catalog.
Reads SHOPIFY_STORE_DOMAIN, SHOPIFY_STOREFRONT_ACCESS_TOKEN, SHOPIFY_API_VERSION
from the environment and exposes a `ShopifyStorefrontClient` class.
"""

import logging
from typing import Any, Dict, Optional

import requests

from . import config
from .errors import RemoteCatalogError

PRODUCTS_QUERY = """
query GetProducts($first: Int!, $cursor: String) {
  products(first: $first, after: $cursor) {
    edges {
      cursor
      node {
        id
        title
        handle
        description
        productType
        vendor
        tags
        collections(first: 250) {
          edges { node { id title handle } }
        }
        variants(first: 250) {
          edges {
            node {
              id
              title
              price { amount currencyCode }
              compareAtPrice { amount currencyCode }
              sku
              availableForSale
            }
          }
        }
        images(first: 250) {
          edges { node { url altText } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

COLLECTIONS_QUERY = """
query GetAllCollections($first: Int!, $cursor: String) {
  collections(first: $first, after: $cursor) {
    edges {
      cursor
      node { id title handle description }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PRODUCT_BY_HANDLE_QUERY = """
query getProductByHandle($handle: String!) {
  product(handle: $handle) {
    id
    title
    description
    handle
    productType
    vendor
    tags
    createdAt
    updatedAt
    images(first: 10) {
      edges { node { url altText } }
    }
    variants(first: 250) {
      edges {
        node {
          id
          title
          sku
          price { amount currencyCode }
          compareAtPrice { amount currencyCode }
          availableForSale
        }
      }
    }
    collections(first: 10) {
      edges { node { id title handle } }
    }
  }
}
"""


def next_cursor(connection: Dict[str, Any]) -> Optional[str]:
    """Cursor for the following page, or None when the connection is exhausted."""
    page_info = connection.get("pageInfo") or {}
    if not page_info.get("hasNextPage"):
        return None
    if page_info.get("endCursor"):
        return page_info["endCursor"]
    edges = connection.get("edges") or []
    return edges[-1].get("cursor") if edges else None


class ShopifyStorefrontClient:
    def __init__(
        self,
        domain: Optional[str] = None,
        token: Optional[str] = None,
        api_version: Optional[str] = None,
        page_size: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.domain = (domain or config.SHOPIFY_STORE_DOMAIN or "").rstrip("/")
        self.token = token or config.SHOPIFY_STOREFRONT_ACCESS_TOKEN
        self.api_version = api_version or config.SHOPIFY_API_VERSION
        self.page_size = page_size or config.SHOPIFY_PAGE_SIZE
        if not all([self.domain, self.token]):
            raise RemoteCatalogError("Missing SHOPIFY_STORE_DOMAIN or SHOPIFY_STOREFRONT_ACCESS_TOKEN")

        host = self.domain if self.domain.startswith("http") else f"https://{self.domain}"
        self.endpoint = f"{host}/api/{self.api_version}/graphql.json"
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-Shopify-Storefront-Access-Token": self.token,
        })

    # ------------------------------------------------------------------
    def graphql(self, query: str, variables: Optional[dict] = None) -> Dict[str, Any]:
        """POST a query and return its `data` member; transport and GraphQL errors raise."""
        payload = {"query": query, "variables": variables or {}}
        try:
            resp = self.session.post(self.endpoint, json=payload, timeout=config.SHOPIFY_TIMEOUT)
        except requests.RequestException as e:
            raise RemoteCatalogError(f"Storefront request failed: {e}") from e
        if resp.status_code != 200:
            raise RemoteCatalogError(f"GraphQL HTTP {resp.status_code}: {resp.text}")

        body = resp.json()
        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise RemoteCatalogError(f"GraphQL errors: {messages}")
        return body.get("data") or {}

    # ------------------------------------------------------------------
    def list_products(self, cursor: Optional[str] = None) -> Dict[str, Any]:
        """One page: {"products": {"edges": [{node, cursor}], "pageInfo": {...}}}"""
        data = self.graphql(PRODUCTS_QUERY, {"first": self.page_size, "cursor": cursor})
        products = data.get("products") or {}
        logging.info(f"Fetched {len(products.get('edges') or [])} products from Shopify (cursor={cursor})")
        return {"products": products}

    def list_collections(self, cursor: Optional[str] = None) -> Dict[str, Any]:
        data = self.graphql(COLLECTIONS_QUERY, {"first": self.page_size, "cursor": cursor})
        collections = data.get("collections") or {}
        logging.info(f"Fetched {len(collections.get('edges') or [])} collections from Shopify (cursor={cursor})")
        return {"collections": collections}

    def get_product_by_handle(self, handle: str) -> Dict[str, Any]:
        data = self.graphql(PRODUCT_BY_HANDLE_QUERY, {"handle": handle})
        return {"product": data.get("product")}

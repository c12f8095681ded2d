# storefront/config.py
import os
from dotenv import load_dotenv

# Load environment variables (optional for local dev)
load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./catalog.db")

# --- Shopify Storefront API ---
SHOPIFY_STORE_DOMAIN = os.getenv("SHOPIFY_STORE_DOMAIN", "").strip().rstrip("/")
SHOPIFY_STOREFRONT_ACCESS_TOKEN = os.getenv("SHOPIFY_STOREFRONT_ACCESS_TOKEN")
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-01")
SHOPIFY_PAGE_SIZE = int(os.getenv("SHOPIFY_PAGE_SIZE", "250"))
SHOPIFY_TIMEOUT = float(os.getenv("SHOPIFY_TIMEOUT", "30"))

# --- Sync behaviour ---
# Follow hasNextPage across requests instead of reconciling the first page only.
SYNC_DRAIN_PAGES = _flag("SYNC_DRAIN_PAGES")
# Reconcile before every catalog read. Remote latency lands on every page load;
# set to false and trigger /api/sync instead when that matters.
SYNC_ON_READ = _flag("SYNC_ON_READ", "true")

# --- Storefront ---
PRODUCTS_PER_PAGE = int(os.getenv("PRODUCTS_PER_PAGE", "9"))
CURRENCY_CODE = "CZK"

# --- Server ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "10000"))

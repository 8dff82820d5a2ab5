"""
Storefront Gateway — Catalog Data Source
==========================================

What:  In-memory products and categories store behind the demo handlers.
Why:   The gateway treats persistence as an opaque data source; an in-memory
       implementation keeps the service self-contained and makes handler
       behaviour deterministic in tests.
How:   Dict-backed, guarded by a lock. Reads return copies so callers (and
       the response pipeline) never alter stored records.
Who:   Route handlers in gateway.routes; the health aggregator pings it.

Product ids are "PRD-0001"-style and never reused within a process.
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from gateway.exceptions import ConflictError, NotFoundError, ValidationError
from gateway.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

SEED_CATEGORIES: List[Dict[str, Any]] = [
    {"id": 1, "name": "Footwear"},
    {"id": 2, "name": "Apparel"},
    {"id": 3, "name": "Accessories"},
]

SEED_PRODUCTS: List[Dict[str, Any]] = [
    {
        "title": "Trail Runner",
        "price": 89.9,
        "previous_price": 119.9,
        "description": "Lightweight trail running shoe with a grippy outsole",
        "category": 1,
        "outstanding": True,
    },
    {
        "title": "Court Classic",
        "price": 64.0,
        "previous_price": None,
        "description": "Leather court sneaker for everyday wear",
        "category": 1,
        "outstanding": False,
    },
    {
        "title": "Merino Hoodie",
        "price": 74.5,
        "previous_price": None,
        "description": "Warm merino wool hoodie with a relaxed fit",
        "category": 2,
        "outstanding": False,
    },
    {
        "title": "Canvas Tote",
        "price": 19.0,
        "previous_price": 25.0,
        "description": "Sturdy canvas tote bag with inner pocket",
        "category": 3,
        "outstanding": True,
    },
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CatalogService:
    def __init__(self, seed: bool = True):
        self._lock = threading.Lock()
        self._products: Dict[str, Dict[str, Any]] = {}
        self._categories: Dict[int, Dict[str, Any]] = {}
        self._sequence = 0
        if seed:
            for category in SEED_CATEGORIES:
                self._categories[category["id"]] = dict(category)
            for product in SEED_PRODUCTS:
                self.create_product(ProductCreate(**product))

    # ── Products ──────────────────────────────────────────────────────────

    def list_products(
        self,
        category: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of matching products and the total match count."""
        with self._lock:
            products = list(self._products.values())

        if category is not None:
            products = [p for p in products if p["category"] == category]
        if search:
            needle = search.lower()
            products = [
                p for p in products
                if needle in p["title"].lower() or needle in p["description"].lower()
            ]

        total = len(products)
        start = (page - 1) * limit
        return copy.deepcopy(products[start:start + limit]), total

    def get_product(self, product_id: str) -> Dict[str, Any]:
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            return copy.deepcopy(product)

    def create_product(self, data: ProductCreate) -> Dict[str, Any]:
        with self._lock:
            self._require_category(data.category)
            title = data.title.lower()
            if any(p["title"].lower() == title for p in self._products.values()):
                raise ConflictError(f"A product titled '{data.title}' already exists")

            self._sequence += 1
            product_id = f"PRD-{self._sequence:04d}"
            timestamp = _now()
            product = {"id": product_id, **data.model_dump(), "created_at": timestamp, "updated_at": timestamp}
            self._products[product_id] = product
        logger.info("Product created: %s", product_id)
        return copy.deepcopy(product)

    def update_product(self, product_id: str, changes: ProductUpdate) -> Dict[str, Any]:
        updates = changes.model_dump(exclude_unset=True)
        with self._lock:
            product = self._products.get(product_id)
            if product is None:
                raise NotFoundError("product", product_id)
            if "category" in updates and updates["category"] is not None:
                self._require_category(updates["category"])
            product.update(updates)
            product["updated_at"] = _now()
            result = copy.deepcopy(product)
        logger.info("Product updated: %s (%s)", product_id, ", ".join(sorted(updates)) or "no fields")
        return result

    def delete_product(self, product_id: str) -> None:
        with self._lock:
            if self._products.pop(product_id, None) is None:
                raise NotFoundError("product", product_id)
        logger.info("Product deleted: %s", product_id)

    # ── Categories ────────────────────────────────────────────────────────

    def list_categories(self) -> List[Dict[str, Any]]:
        with self._lock:
            counts: Dict[int, int] = {}
            for product in self._products.values():
                counts[product["category"]] = counts.get(product["category"], 0) + 1
            return [
                {**category, "product_count": counts.get(category_id, 0)}
                for category_id, category in sorted(self._categories.items())
            ]

    def _require_category(self, category_id: int) -> None:
        if category_id not in self._categories:
            raise ValidationError(f"Unknown category {category_id}", field="category")

    # ── Health ────────────────────────────────────────────────────────────

    def ping(self) -> Dict[str, int]:
        with self._lock:
            return {"products": len(self._products), "categories": len(self._categories)}

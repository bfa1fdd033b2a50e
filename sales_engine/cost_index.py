"""
Product -> supplier unit cost lookup used for profit.

Built once per products/supplier-products snapshot. A product's cost is the
first of:
    1. its ``supplierProductId`` found in the supplier catalog
    2. the ``price`` of an embedded supplier-product object
    3. a supplier catalog entry with the same (case-insensitive) name
Products with no match cost 0 and are reported as missing; a missing cost
never stops a profit run.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from sales_engine.models import normalize_id_value, normalize_text, to_number
from sales_engine.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CostLookup:
    """Result of a cost lookup."""
    price: float
    found: bool


def _embedded_price(raw_supplier_product: Any) -> Optional[float]:
    if not isinstance(raw_supplier_product, Mapping):
        return None
    price = raw_supplier_product.get("price")
    if price is None or isinstance(price, bool):
        return None
    try:
        number = float(price)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass
class CostIndex:
    """Resolved supplier unit cost per product."""
    by_product_id: Dict[str, float] = field(default_factory=dict)
    by_supplier_product_id: Dict[str, float] = field(default_factory=dict)
    by_normalized_name: Dict[str, float] = field(default_factory=dict)
    missing_product_ids: Set[str] = field(default_factory=set)

    @classmethod
    def build(
        cls,
        products: Optional[Iterable[Any]],
        supplier_products: Optional[Iterable[Any]],
    ) -> "CostIndex":
        """
        Build the index from product and supplier-product collections.

        Entries that are not objects, or that carry no id/name, are ignored.
        """
        index = cls()

        for supplier_product in supplier_products or ():
            if not isinstance(supplier_product, Mapping):
                continue
            price = to_number(supplier_product.get("price"), 0.0)
            sp_id = normalize_id_value(supplier_product.get("_id") or supplier_product.get("id"))
            if sp_id:
                index.by_supplier_product_id[sp_id] = price
            name_key = normalize_text(supplier_product.get("name"))
            if name_key:
                index.by_normalized_name[name_key] = price

        for product in products or ():
            if not isinstance(product, Mapping):
                continue
            product_id = normalize_id_value(
                product.get("_id") or product.get("productId") or product.get("id")
            )
            if not product_id:
                continue
            cost = index._resolve_product_cost(product)
            if cost is None:
                index.missing_product_ids.add(product_id)
                cost = 0.0
            index.by_product_id[product_id] = cost

        logger.debug("Cost index built", extra=index.stats())
        return index

    def _resolve_product_cost(self, product: Mapping) -> Optional[float]:
        raw_supplier_product = product.get("supplierProductId")

        supplier_product_id = normalize_id_value(raw_supplier_product)
        if supplier_product_id and supplier_product_id in self.by_supplier_product_id:
            return self.by_supplier_product_id[supplier_product_id]

        embedded = _embedded_price(raw_supplier_product)
        if embedded is not None:
            return embedded

        name_key = normalize_text(product.get("name"))
        if name_key and name_key in self.by_normalized_name:
            return self.by_normalized_name[name_key]

        return None

    def lookup(self, product_id: Optional[str], product_name: Optional[str] = None) -> CostLookup:
        """
        Unit cost for a sold product.

        Tries the product id, then the supplier catalog by name. ``found``
        is False when cost is assumed to be 0, including catalog products
        whose supplier cost could not be resolved.
        """
        if (
            product_id
            and product_id in self.by_product_id
            and product_id not in self.missing_product_ids
        ):
            return CostLookup(price=self.by_product_id[product_id], found=True)

        name_key = normalize_text(product_name)
        if name_key and name_key in self.by_normalized_name:
            return CostLookup(price=self.by_normalized_name[name_key], found=True)

        return CostLookup(price=0.0, found=False)

    def stats(self) -> Dict[str, int]:
        """Index sizes for diagnostics."""
        return {
            "products": len(self.by_product_id),
            "supplier_products": len(self.by_supplier_product_id),
            "supplier_names": len(self.by_normalized_name),
            "products_without_cost": len(self.missing_product_ids),
        }

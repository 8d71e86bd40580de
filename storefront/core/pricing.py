from dataclasses import dataclass, asdict

from storefront.config import SHIPPING_COST, SHIPPING_THRESHOLD


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    discount: float
    after_discount: float
    shipping: float
    total: float
    free_shipping_missing: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_totals(
    subtotal: float,
    discount: float = 0.0,
    shipping_threshold: float = SHIPPING_THRESHOLD,
    shipping_cost: float = SHIPPING_COST,
) -> OrderTotals:
    """
    Totales del pedido a partir del subtotal y el descuento del código promo.
    {
      "after_discount": max(0, subtotal - discount),
      "shipping": 0 si after_discount >= umbral, si no el costo fijo,
      "total": after_discount + shipping
    }
    Se recalcula en cada lectura; no se guarda.
    """
    subtotal = round(max(0.0, float(subtotal)), 2)
    discount = round(max(0.0, float(discount)), 2)
    after_discount = round(max(0.0, subtotal - discount), 2)
    shipping = 0.0 if after_discount >= shipping_threshold else float(shipping_cost)
    return OrderTotals(
        subtotal=subtotal,
        # El descuento efectivo nunca supera el subtotal
        discount=round(subtotal - after_discount, 2),
        after_discount=after_discount,
        shipping=shipping,
        total=round(after_discount + shipping, 2),
        free_shipping_missing=round(max(0.0, shipping_threshold - after_discount), 2),
    )

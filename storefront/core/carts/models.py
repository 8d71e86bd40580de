import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


LineKey = Tuple[str, str, str]


def _require_str(data: dict, name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Campo '{name}' inválido")
    return value


def _is_number(value) -> bool:
    # JSON acepta Infinity/NaN; no son cantidades ni precios válidos
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _stock(value) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("Stock inválido")
    return int(value)


@dataclass(frozen=True)
class ProductSnapshot:
    """Copia inmutable del producto al momento de agregarlo (el precio queda congelado)."""
    id: str
    name: str
    price: float

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("ID de producto inválido")
        if not _is_number(self.price) or self.price < 0:
            raise ValueError("Precio no puede ser negativo")

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        if not isinstance(data, dict):
            raise ValueError("Producto inválido")
        price = data.get("price")
        if not _is_number(price):
            raise ValueError("Precio inválido")
        return cls(id=_require_str(data, "id"), name=str(data.get("name") or ""), price=float(price))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "price": self.price}


@dataclass(frozen=True)
class SizeStock:
    size: str
    stock: int = 0


@dataclass(frozen=True)
class Variant:
    color: str
    sizes: Tuple[SizeStock, ...] = ()
    images: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.color or not isinstance(self.color, str):
            raise ValueError("Color de variante inválido")

    def offers(self, size: str) -> bool:
        # Una variante sin tallas declaradas acepta cualquier talla
        if not self.sizes:
            return True
        return any(s.size == size for s in self.sizes)

    @classmethod
    def from_dict(cls, data: dict) -> "Variant":
        if not isinstance(data, dict):
            raise ValueError("Variante inválida")
        sizes = []
        for s in data.get("sizes") or []:
            if isinstance(s, dict) and s.get("size"):
                sizes.append(SizeStock(size=str(s["size"]), stock=_stock(s.get("stock"))))
            elif isinstance(s, str) and s:
                sizes.append(SizeStock(size=s))
        images = []
        for img in data.get("images") or []:
            url = img.get("url") if isinstance(img, dict) else img
            if isinstance(url, str) and url:
                images.append(url)
        return cls(color=_require_str(data, "color"), sizes=tuple(sizes), images=tuple(images))

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "sizes": [{"size": s.size, "stock": s.stock} for s in self.sizes],
            "images": list(self.images),
        }


@dataclass(frozen=True)
class CartLine:
    product: ProductSnapshot
    variant: Variant
    size: str
    quantity: int = 1

    def __post_init__(self):
        if not self.size or not isinstance(self.size, str):
            raise ValueError("Talla inválida")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool) or self.quantity <= 0:
            raise ValueError("Cantidad debe ser > 0")

    @property
    def key(self) -> LineKey:
        return (self.product.id, self.variant.color, self.size)

    def line_total(self) -> float:
        return self.product.price * self.quantity

    def order_item(self) -> dict:
        return {
            "product_id": self.product.id,
            "color": self.variant.color,
            "size": self.size,
            "qty": self.quantity,
            "unit_price": self.product.price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        """Reconstruye una línea guardada. Lanza ValueError si la forma no es válida."""
        if not isinstance(data, dict):
            raise ValueError("Entrada de carrito inválida")
        missing = [k for k in ("product", "variant", "size", "quantity") if data.get(k) is None]
        if missing:
            raise ValueError(f"Faltan campos: {', '.join(missing)}")
        quantity = data["quantity"]
        if not _is_number(quantity) or quantity != int(quantity):
            raise ValueError("Cantidad no numérica")
        return cls(
            product=ProductSnapshot.from_dict(data["product"]),
            variant=Variant.from_dict(data["variant"]),
            size=_require_str(data, "size"),
            quantity=int(quantity),
        )

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "variant": self.variant.to_dict(),
            "size": self.size,
            "quantity": self.quantity,
            "line_total": self.line_total(),
        }


@dataclass(frozen=True)
class CartState:
    lines: Tuple[CartLine, ...] = field(default_factory=tuple)

    @property
    def subtotal(self) -> float:
        return round(sum(line.line_total() for line in self.lines), 2)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def signature(self) -> str:
        return "|".join(
            f"{line.product.id}-{line.variant.color}-{line.size}-{line.quantity}" for line in self.lines
        )

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, key: LineKey) -> Optional[CartLine]:
        return next((line for line in self.lines if line.key == key), None)

    def order_items(self) -> List[dict]:
        return [line.order_item() for line in self.lines]

    def to_summary(self) -> dict:
        return {
            "items": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "item_count": self.item_count,
            "signature": self.signature,
        }

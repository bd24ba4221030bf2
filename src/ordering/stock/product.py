"""Product stock record (CQRS aggregate).

Catalogue management lives elsewhere; this aggregate carries the slice of
a product the ordering service needs: the current price used for order
snapshots and the on-hand stock count. ``stock`` is only ever written
through ``ordering.stock.ledger.StockLedger``.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from ordering.domain import ordering
from ordering.stock.events import StockCredited, StockDebited


@ordering.aggregate
class Product:
    name: String(required=True, max_length=255)
    price: Float(required=True, min_value=0.0)
    discount_price: Float(min_value=0.0)
    image_url: String(max_length=500)
    stock: Integer(default=0)
    is_active: Boolean(default=True)
    updated_at: DateTime()

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    @invariant.post
    def discount_price_must_be_below_price(self):
        if self.discount_price and self.price is not None and self.discount_price >= self.price:
            raise ValidationError({"discount_price": ["Discount price must be lower than the regular price"]})

    @classmethod
    def create(cls, name, price, stock=0, discount_price=None, image_url=None):
        return cls(
            name=name,
            price=price,
            discount_price=discount_price,
            image_url=image_url,
            stock=stock,
            updated_at=datetime.now(UTC),
        )

    @property
    def selling_price(self) -> float:
        """Price a buyer pays right now: the discount price when one is set."""
        return self.discount_price if self.discount_price else self.price

    def credit_stock(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        self.stock += quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockCredited(
                product_id=str(self.id),
                quantity=quantity,
                new_stock=self.stock,
            )
        )

    def debit_stock(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if quantity > self.stock:
            raise ValidationError({"stock": [f"Only {self.stock} units of {self.name} in stock"]})

        self.stock -= quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockDebited(
                product_id=str(self.id),
                quantity=quantity,
                new_stock=self.stock,
            )
        )

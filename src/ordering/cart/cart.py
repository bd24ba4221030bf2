"""Shopping cart aggregate: pre-checkout items of a customer or an anonymous session.

A cart belongs either to a customer or to an anonymous session. Items carry
the product name, price and image seen when they were added. Totals are
always recomputed from the item list, never adjusted incrementally.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.cart.events import CartConverted, CartItemAdded, CartRetired, CartsMerged
from ordering.domain import ordering


class CartStatus(Enum):
    ACTIVE = "Active"
    CONVERTED = "Converted"
    MERGED = "Merged"


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=500)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # For guest cart identification
    items = HasMany(CartItem)
    total_items = Integer(default=0)
    total_price = Float(default=0.0)
    merged_cart_ids = Text()  # JSON array of session carts already merged in
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_an_owner(self):
        if not self.customer_id and not self.session_id:
            raise ValidationError({"cart": ["A cart belongs to a customer or a session"]})

    @invariant.post
    def cart_must_have_items_to_convert(self):
        if self.status == CartStatus.CONVERTED.value and not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart to an order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            status=CartStatus.ACTIVE.value,
            merged_cart_ids=json.dumps([]),
            created_at=now,
            updated_at=now,
        )

    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a {self.status.lower()} cart"]})

    def _recalculate_totals(self):
        self.total_items = sum(item.quantity for item in self.items)
        self.total_price = round(sum(item.price * item.quantity for item in self.items), 2)

    def _find_item(self, product_id):
        return next((i for i in self.items if str(i.product_id) == str(product_id)), None)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, name, price, quantity, image_url=None):
        """Add an item to the cart (or increase quantity if already present)."""
        self._assert_active("add items to")

        existing = self._find_item(product_id)
        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                name=name,
                price=price,
                image_url=image_url,
                quantity=quantity,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self._recalculate_totals()
        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                quantity=quantity,
            )
        )

    # -------------------------------------------------------------------
    # Cart merging (session → customer)
    # -------------------------------------------------------------------
    def has_merged(self, source_cart_id):
        merged = json.loads(self.merged_cart_ids) if self.merged_cart_ids else []
        return str(source_cart_id) in merged

    def merge_from(self, source_cart):
        """Merge the items of an anonymous session cart into this cart.

        Quantities of products already in this cart are summed; other items
        are appended with their original snapshot. The source cart is not
        modified; it is retired separately once this cart is saved.
        Returns the number of source lines merged (0 when already merged).
        """
        self._assert_active("merge into")
        if self.has_merged(source_cart.id):
            return 0

        now = datetime.now(UTC)
        for source_item in source_cart.items:
            existing = self._find_item(source_item.product_id)
            if existing:
                existing.quantity += source_item.quantity
            else:
                self.add_items(
                    CartItem(
                        product_id=source_item.product_id,
                        name=source_item.name,
                        price=source_item.price,
                        image_url=source_item.image_url,
                        quantity=source_item.quantity,
                        added_at=now,
                    )
                )

        merged = json.loads(self.merged_cart_ids) if self.merged_cart_ids else []
        merged.append(str(source_cart.id))
        self.merged_cart_ids = json.dumps(merged)
        self._recalculate_totals()
        self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_cart_id=str(source_cart.id),
                source_session_id=source_cart.session_id,
                items_merged_count=len(source_cart.items),
                total_items=self.total_items,
            )
        )
        return len(source_cart.items)

    def retire(self, merged_into_cart_id):
        """Retire a session cart whose items now live in a customer's cart."""
        if CartStatus(self.status) == CartStatus.MERGED:
            return
        self._assert_active("retire")

        self.status = CartStatus.MERGED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartRetired(
                cart_id=str(self.id),
                merged_into_cart_id=str(merged_into_cart_id),
            )
        )

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def convert_to_order(self, order_id):
        """Mark cart as converted to an order."""
        self._assert_active("convert")
        if not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})

        self.status = CartStatus.CONVERTED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                order_id=str(order_id),
                customer_id=str(self.customer_id) if self.customer_id else None,
            )
        )

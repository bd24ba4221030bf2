"""Domain events for the Product stock record."""

from protean.fields import Identifier, Integer

from ordering.domain import ordering


@ordering.event(part_of="Product")
class StockCredited:
    """Units were returned to stock (e.g. a cancelled order)."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)


@ordering.event(part_of="Product")
class StockDebited:
    """Units were taken out of stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)

"""Stock ledger — the only writer of ``Product.stock``.

Every adjustment is a single versioned save of one Product, so two
adjustments racing on the same product cannot both succeed against the same
version: the loser's unit of work fails with ``ExpectedVersionError`` and is
re-run by ``process_with_retry``.

A product that no longer exists is skipped with a warning rather than
failing the surrounding operation; a cancelled order must still cancel even
if one of its products was deleted from the catalogue.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.stock.product import Product


class StockLedger:
    def _load(self, product_id):
        try:
            return current_domain.repository_for(Product).get(product_id)
        except ObjectNotFoundError:
            return None

    def credit(self, product_id, quantity) -> bool:
        """Return ``quantity`` units to stock. False when the product is gone."""
        product = self._load(product_id)
        if product is None:
            logger.warning("stock_credit_skipped", product_id=str(product_id), quantity=quantity)
            return False

        product.credit_stock(quantity)
        current_domain.repository_for(Product).add(product)
        logger.info("stock_credited", product_id=str(product_id), quantity=quantity, new_stock=product.stock)
        return True

    def debit(self, product_id, quantity) -> bool:
        """Take ``quantity`` units out of stock. False when the product is gone.

        Raises ``ValidationError`` when fewer than ``quantity`` units remain.
        """
        product = self._load(product_id)
        if product is None:
            logger.warning("stock_debit_skipped", product_id=str(product_id), quantity=quantity)
            return False

        product.debit_stock(quantity)
        current_domain.repository_for(Product).add(product)
        logger.info("stock_debited", product_id=str(product_id), quantity=quantity, new_stock=product.stock)
        return True


@ordering.command(part_of="Product")
class CreditStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Product")
class DebitStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command_handler(part_of=Product)
class StockLedgerHandler:
    @handle(CreditStock)
    def credit_stock(self, command):
        return StockLedger().credit(command.product_id, command.quantity)

    @handle(DebitStock)
    def debit_stock(self, command):
        return StockLedger().debit(command.product_id, command.quantity)

"""Application tests for the stock ledger."""

import pytest
from ordering.stock.ledger import CreditStock, DebitStock, StockLedger
from protean import current_domain
from protean.exceptions import ValidationError


class TestStockLedger:
    def test_credit(self, lamp, stock_of):
        assert current_domain.process(CreditStock(product_id=lamp, quantity=4), asynchronous=False) is True
        assert stock_of(lamp) == 14

    def test_debit(self, lamp, stock_of):
        assert current_domain.process(DebitStock(product_id=lamp, quantity=4), asynchronous=False) is True
        assert stock_of(lamp) == 6

    def test_debit_below_zero_rejected(self, lamp, stock_of):
        with pytest.raises(ValidationError):
            current_domain.process(DebitStock(product_id=lamp, quantity=11), asynchronous=False)
        assert stock_of(lamp) == 10

    def test_missing_product_is_skipped(self):
        assert StockLedger().credit("no-such-product", 2) is False
        assert StockLedger().debit("no-such-product", 2) is False

    def test_repeated_credits_accumulate(self, lamp, stock_of):
        for _ in range(5):
            current_domain.process(CreditStock(product_id=lamp, quantity=1), asynchronous=False)
        assert stock_of(lamp) == 15

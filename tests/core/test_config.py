"""Tests for BillingConfig."""

import pytest
from pydantic import ValidationError

from core.config import BillingConfig


class TestBillingConfig:

    def test_defaults(self):
        config = BillingConfig()

        assert config.default_due_days == 30
        assert config.invoice_number_prefix == "INV"
        assert config.receipt_number_prefix == "RCP"
        assert config.currency == "PKR"
        assert config.payment_conflict_retries == 3
        assert config.status_scan_page_size == 200

    @pytest.mark.parametrize("field, value", [
        ("default_due_days", -1),
        ("default_due_days", 366),
        ("currency", "RUPEE"),
        ("payment_conflict_retries", 11),
        ("invoice_number_prefix", ""),
        ("status_scan_page_size", 0),
    ])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            BillingConfig(**{field: value})

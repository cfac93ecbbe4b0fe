"""
Tests for the fixed-capacity rolling window.

File: backend/tests/test_rolling_window.py
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from lendwatch.core.exceptions import ConfigurationError, EmptyWindowError
from lendwatch.stats import RollingWindow
from lendwatch.stats.numeric import numeric_context


class TestRollingWindow:
    """Test suite for RollingWindow."""

    @pytest.mark.parametrize("capacity", [0, -1, 2.5, True, "10"])
    def test_rejects_invalid_capacity(self, capacity):
        with pytest.raises(ConfigurationError):
            RollingWindow(capacity)

    def test_empty_window_reads_raise(self):
        window = RollingWindow(3)
        assert window.num_elements == 0
        with pytest.raises(EmptyWindowError):
            window.average()
        with pytest.raises(EmptyWindowError):
            window.standard_deviation()

    def test_single_element(self):
        window = RollingWindow(3)
        window.add_element(42)
        assert window.average() == Decimal(42)
        assert window.standard_deviation() == Decimal(0)

    def test_population_statistics(self):
        window = RollingWindow(10)
        for value in [2, 4, 4, 4, 5, 5, 7, 9]:
            window.add_element(value)

        assert window.num_elements == 8
        assert window.average() == Decimal(5)
        assert window.variance() == Decimal(4)
        assert window.standard_deviation() == Decimal(2)

    def test_reads_are_idempotent(self):
        window = RollingWindow(5)
        for value in [3, 9, 27]:
            window.add_element(value)
        assert window.average() == window.average()
        assert window.standard_deviation() == window.standard_deviation()
        assert window.num_elements == 3

    def test_oldest_value_is_evicted(self):
        window = RollingWindow(3)
        for value in [1, 2, 3, 100]:
            window.add_element(value)

        assert window.num_elements == 3
        assert window.count == 4
        assert window.values() == [Decimal(2), Decimal(3), Decimal(100)]
        assert window.average() == Decimal(35)
        with numeric_context():
            expected_variance = Decimal(6338) / Decimal(3)
        assert window.variance() == expected_variance

    def test_large_wei_values_keep_precision(self):
        window = RollingWindow(2)
        window.add_element(10**30)
        window.add_element(10**30 + 2)

        assert window.average() == Decimal(10**30 + 1)
        assert window.standard_deviation() == Decimal(1)

    def test_constant_values_have_zero_deviation(self):
        window = RollingWindow(4)
        for _ in range(10):
            window.add_element("123456789.123456789")
        assert window.standard_deviation() == Decimal(0)

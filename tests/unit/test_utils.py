"""
Unit tests for amm_arb.utils module.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest

from amm_arb.types import Direction
from amm_arb.utils import (
    atomic_write_text,
    bps_to_decimal,
    safe_json_dump,
    timestamp_to_iso,
)


class TestTimestampUtils:
    """Test timestamp utilities."""

    def test_timestamp_to_iso(self):
        assert timestamp_to_iso(0) == "1970-01-01T00:00:00+00:00"


class TestBasisPoints:
    def test_bps_to_fraction(self):
        assert bps_to_decimal(25) == Decimal("0.0025")
        assert bps_to_decimal(10000) == Decimal("1")


class TestJsonUtils:
    def test_decimals_become_strings(self):
        data = json.loads(safe_json_dump({"amount": Decimal("0.000000001")}))
        assert Decimal(data["amount"]) == Decimal("0.000000001")
        assert isinstance(data["amount"], str)

    def test_enums_paths_and_dataclasses(self):
        @dataclass
        class Leg:
            pool_id: str
            amount: Decimal

        data = json.loads(
            safe_json_dump(
                {
                    "direction": Direction.BUY_B_SELL_A,
                    "path": Path("/tmp/x"),
                    "leg": Leg("A", Decimal("1.5")),
                }
            )
        )

        assert data["direction"] == "BuyB_SellA"
        assert data["path"] == "/tmp/x"
        assert data["leg"] == {"pool_id": "A", "amount": "1.5"}


class TestAtomicWrite:
    def test_creates_parents_and_replaces(self, tmp_path):
        target = tmp_path / "a" / "b" / "out.json"

        atomic_write_text(target, "first")
        atomic_write_text(target, "second")

        assert target.read_text() == "second"
        assert list(target.parent.iterdir()) == [target]

    def test_failed_write_leaves_previous_content(self, tmp_path, monkeypatch):
        target = tmp_path / "out.json"
        target.write_text("previous")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("amm_arb.utils.os.replace", broken_replace)

        with pytest.raises(OSError):
            atomic_write_text(target, "new")

        assert target.read_text() == "previous"
        assert list(tmp_path.iterdir()) == [target]

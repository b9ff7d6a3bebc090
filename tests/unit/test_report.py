"""
Unit tests for amm_arb/report.py
"""

import json
from decimal import Decimal

import pytest
from conftest import MINT_IN, OTHER_MINT, make_arb_config, make_pool

from amm_arb.decision_engine import DecisionEngine
from amm_arb.exceptions import RpcUnavailable
from amm_arb.interfaces import SimulationOutcome
from amm_arb.report import (
    ANALYSIS_FIELDS,
    analysis_result,
    build_report,
    write_report,
)


def _simulated_verdict():
    engine = DecisionEngine()
    verdict = engine.evaluate(
        make_pool("A", "1000", "2000"), make_pool("B", "1000", "2100"), make_arb_config()
    )
    return engine.finalize(verdict)


def test_failed_run_keeps_every_key():
    verdict = DecisionEngine.fail(RpcUnavailable("node down"))

    report = build_report(verdict, {"amount_in": Decimal("1")}, 100.0, 100.25)
    data = report.to_dict()

    for key in ANALYSIS_FIELDS:
        assert key in data["analysis"]
    assert data["analysis"]["decision"] == "Failed"
    assert data["analysis"]["failure_reason"] == "RpcUnavailable: node down"
    assert data["analysis"]["spread_bps"] is None
    assert data["analysis"]["net_profit_in_mint_in"] is None
    assert data["pools"] == {"pool_a": None, "pool_b": None}
    assert data["execution_time_ms"] == 250


def test_failed_run_keeps_fetched_snapshots():
    pool_a = make_pool("A")
    pool_b = make_pool("B", token_in=OTHER_MINT)
    engine = DecisionEngine()
    verdict = engine.evaluate(pool_a, pool_b, make_arb_config())

    report = build_report(
        verdict, {}, 0.0, 1.0, snapshots={"pool_a": pool_a, "pool_b": pool_b}
    )

    assert report.analysis.failure_reason.startswith("MintMismatch")
    assert report.pools["pool_b"]["token_in"] == OTHER_MINT


def test_simulated_report_json():
    verdict = _simulated_verdict()
    simulation = SimulationOutcome(logs=["Program log: ok"], units_consumed=120000)

    report = build_report(verdict, make_arb_config().to_dict(), 0.0, 1.0, simulation=simulation)
    data = json.loads(report.to_json())

    analysis = data["analysis"]
    assert analysis["decision"] == "SimulateOnly"
    assert analysis["spread_bps"] == 500
    assert analysis["direction"] == "BuyA_SellB"
    assert analysis["failure_reason"] is None
    # Decimals survive as strings
    assert analysis["price_a"] == "2"
    assert Decimal(analysis["gross_profit"]) > 0
    assert data["config"]["mint_in"] == MINT_IN
    assert data["trade_plan"]["sell_leg"]["pool_id"] == "B"
    assert data["simulation"]["success"] is True
    assert data["transaction_signature"] is None


def test_unfinalized_verdict_is_rejected():
    engine = DecisionEngine()
    verdict = engine.evaluate(
        make_pool("A", "1000", "2000"), make_pool("B", "1000", "2100"), make_arb_config()
    )

    with pytest.raises(ValueError):
        analysis_result(verdict)


def test_write_report_replaces_file(tmp_path):
    target = tmp_path / "reports" / "arbitrage_result.json"
    target.parent.mkdir()
    target.write_text("stale")

    report = build_report(_simulated_verdict(), {}, 0.0, 1.0)
    write_report(report, target)

    assert json.loads(target.read_text())["analysis"]["decision"] == "SimulateOnly"
    assert [p.name for p in target.parent.iterdir()] == ["arbitrage_result.json"]

import itertools
import json
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
import pytest

import engine
from fund_core import (
    OPENING_BALANCE,
    _cvar,
    DayResult,
    FinancialMetrics,
    SimulationEngine,
    SimulationParameters,
    apply_preset,
    compute_metrics,
    daily_variation,
    delivery_payments,
    fund_contributions,
    generate_recommendations,
    governance_decision,
    profitability,
    run_monte_carlo,
    shift_payment,
    simulate,
    summarize_metrics,
    weekly_bonus,
)


def _params(**kwargs):
    values = {
        "daily_orders": 1000,
        "average_order_value": 50,
        "marketplace_commission_rate": 12,
        "logistic_fee_base": 0.75,
        "active_deliverys": 50,
        "deliveries_per_driver": 20,
        "simulation_days": 30,
    }
    values.update(kwargs)
    return SimulationParameters(**values)


def _draining_params(**kwargs):
    # 200 orders at zero commission: 200 in, 10 shifts x 216 out per day
    values = {
        "daily_orders": 200,
        "average_order_value": 0,
        "marketplace_commission_rate": 0,
        "logistic_fee_base": 4.0,
        "deliveries_per_driver": 20,
        "simulation_days": 3,
    }
    values.update(kwargs)
    return _params(**values)


def _day(day, balance, contributions=0.0, payments=0.0):
    return DayResult(
        day=day,
        orders=1,
        fund_contributions=contributions,
        delivery_payments=payments,
        fund_balance=balance,
        profitability=profitability(contributions, payments),
    )


def _cycle(values):
    it = itertools.cycle(values)
    return lambda: next(it)


def test_first_day_matches_worked_example():
    eng = SimulationEngine(_params(), variation=False, governance=False)
    out = eng.run()
    first = out.results[0]
    assert first.orders == 1000
    assert first.fund_contributions == pytest.approx(3922.5)
    assert first.delivery_payments == pytest.approx(50 * 216)
    assert first.fund_balance == pytest.approx(OPENING_BALANCE + 3922.5 - 10800)


def test_contribution_components():
    # 60% of commission + 25% of fee + 2.25% of commission
    assert fund_contributions(1, 100, 10, 2.0) == pytest.approx(6.0 + 0.5 + 0.225)
    assert fund_contributions(0, 100, 10, 2.0) == 0


def test_delivery_payments_partial_last_shift():
    # shifts of 20, 20 and 5 deliveries
    assert shift_payment(5) == pytest.approx(25 + 10 + 4)
    assert delivery_payments(45, 20) == pytest.approx(2 * 216 + 39)


@pytest.mark.parametrize(
    "weekly, bonus",
    [(0, 0), (19, 0), (20, 10), (39, 10), (40, 30), (59, 30), (60, 60), (79, 60), (80, 100), (700, 100)],
)
def test_weekly_bonus_breakpoints(weekly, bonus):
    assert weekly_bonus(weekly) == bonus


def test_weekly_bonus_is_non_decreasing():
    bonuses = [weekly_bonus(w) for w in range(0, 200)]
    assert all(a <= b for a, b in zip(bonuses, bonuses[1:]))


def test_balance_recurrence_holds_every_day():
    out = simulate(_params(simulation_days=60), seed=7)
    prev = OPENING_BALANCE
    for r in out.results:
        assert r.fund_balance == pytest.approx(prev + r.fund_contributions - r.delivery_payments)
        prev = r.fund_balance
    assert [r.day for r in out.results] == list(range(1, 61))


def test_orders_floor_under_extreme_negative_draws():
    # u1 close to 0 and cos(2*pi*0.5) == -1 push the multiplier to the 0.5 floor
    out = simulate(_params(daily_orders=1, simulation_days=10), uniform=_cycle([0.999999, 0.5]))
    assert all(r.orders == 1 for r in out.results)
    assert len(out.results) == 10


def test_daily_variation_clamps_both_tails():
    assert daily_variation(_cycle([0.999999, 0.5])) == 0.5
    assert daily_variation(_cycle([0.999999, 0.0])) == 1.5


def test_daily_variation_accepts_zero_uniform():
    assert daily_variation(lambda: 0.0) == 1.0


def test_daily_variation_bounds_and_mean():
    rng = np.random.default_rng(123)
    draws = np.array([daily_variation(rng.random) for _ in range(100_000)])
    assert draws.min() >= 0.5
    assert draws.max() <= 1.5
    assert abs(draws.mean() - 1.0) < 0.01


def test_governance_raises_then_compounds_fee():
    params = _draining_params()
    eng = SimulationEngine(params, variation=False, opening_balance=5_100)
    out = eng.run()
    actions = [r.governance_action for r in out.results]
    assert actions == ["rate_increase", "emergency_rate_increase", "emergency_rate_increase"]

    fees = [r.adjustments["logisticFee"] for r in out.results]
    assert fees[0] == pytest.approx(4.0 * 1.2)
    assert fees[1] == pytest.approx(4.0 * 1.2 * 1.5)
    assert fees[2] == pytest.approx(4.0 * 1.2 * 1.5 * 1.5)
    assert out.results[0].adjustments["reason"] == "Low balance detected"
    assert out.results[1].adjustments["reason"] == "Emergency mode activated"

    # raised fee feeds the next day's contributions
    assert out.results[0].fund_contributions == pytest.approx(200)
    assert out.results[1].fund_contributions == pytest.approx(240)
    assert out.results[2].fund_contributions == pytest.approx(360)
    assert [r.fund_balance for r in out.results] == pytest.approx([3140, 1220, -580])

    assert params.logistic_fee_base == 4.0
    assert eng.runtime_logistic_fee == pytest.approx(10.8)


def test_governance_disabled_leaves_fee_untouched():
    eng = SimulationEngine(_draining_params(), variation=False, governance=False, opening_balance=5_100)
    out = eng.run()
    assert all(r.governance_action is None for r in out.results)
    assert all(r.fund_contributions == pytest.approx(200) for r in out.results)
    assert eng.runtime_logistic_fee == 4.0


def test_governance_decision_thresholds():
    assert governance_decision(5_000, 1.0) is None
    action, fee, _ = governance_decision(4_999.99, 1.0)
    assert action == "rate_increase" and fee == pytest.approx(1.2)
    action, fee, _ = governance_decision(1_999.99, 1.0)
    assert action == "emergency_rate_increase" and fee == pytest.approx(1.5)


def test_run_resets_state_between_runs():
    eng = SimulationEngine(_draining_params(), variation=False, opening_balance=5_100)
    first = eng.run()
    second = eng.run()
    assert first.results == second.results
    assert len(second.results) == 3
    assert eng.runtime_logistic_fee == pytest.approx(10.8)


def test_seeded_runs_are_identical():
    a = simulate(_params(), seed=99)
    b = simulate(_params(), seed=99)
    assert a.results == b.results


def test_injected_sources_give_identical_sequences():
    a = simulate(_params(), uniform=np.random.default_rng(5).random)
    b = simulate(_params(), uniform=np.random.default_rng(5).random)
    assert a.results == b.results
    assert len({r.orders for r in a.results}) > 1


def test_concurrent_runs_do_not_share_state():
    seeds = [1, 2, 3, 4]
    sequential = [simulate(_params(), seed=s).results for s in seeds]
    with ThreadPoolExecutor(max_workers=4) as pool:
        parallel = list(pool.map(lambda s: simulate(_params(), seed=s).results, seeds))
    assert sequential == parallel


def test_break_even_never_reached():
    metrics = compute_metrics([_day(1, -5.0), _day(2, -1.0)])
    assert metrics.break_even_day == 0
    assert metrics.peak_deficit == -5.0
    assert metrics.peak_surplus == -1.0


def test_break_even_first_day_and_later_day():
    assert compute_metrics([_day(1, 0.0), _day(2, -3.0)]).break_even_day == 1
    assert compute_metrics([_day(1, -3.0), _day(2, -1.0), _day(3, 4.0)]).break_even_day == 3


def test_metrics_totals_and_roi():
    results = [_day(1, 0, contributions=100, payments=50), _day(2, 0, contributions=100, payments=200)]
    m = compute_metrics(results)
    assert m.total_contributions == 200
    assert m.total_payments == 250
    assert m.net_balance == -50
    assert m.average_roi == pytest.approx(-25.0)


def test_metrics_empty_series():
    assert compute_metrics([]) == FinancialMetrics()


def test_zero_contributions_never_produce_nan():
    params = _params(average_order_value=0, marketplace_commission_rate=0, logistic_fee_base=0, simulation_days=5)
    out = simulate(params, seed=1, governance=False)
    assert all(r.profitability == 0 for r in out.results)
    assert out.metrics.average_roi == 0
    assert all(math.isfinite(r.fund_balance) for r in out.results)


def test_recommendations_roi_rules_are_exclusive():
    assert len(generate_recommendations(FinancialMetrics(average_roi=-30))) == 1
    assert generate_recommendations(FinancialMetrics(average_roi=-30))[0].startswith("CRITICAL")
    assert generate_recommendations(FinancialMetrics(average_roi=-10))[0].startswith("WARNING")
    assert generate_recommendations(FinancialMetrics(average_roi=25))[0].startswith("EXCELLENT")
    assert generate_recommendations(FinancialMetrics(average_roi=10)) == []


def test_recommendations_balance_rules():
    recs = generate_recommendations(
        FinancialMetrics(average_roi=-10, peak_deficit=-20_000, break_even_day=31, peak_surplus=60_000)
    )
    assert len(recs) == 4
    assert recs[1].startswith("RESERVE FUND")
    assert recs[2].startswith("EQUILIBRIUM TIME")
    assert recs[3].startswith("DISTRIBUTION")
    assert generate_recommendations(FinancialMetrics(break_even_day=0)) == []


@pytest.mark.parametrize(
    "overrides, exc",
    [
        ({"simulation_days": 0}, ValueError),
        ({"simulation_days": 2.5}, ValueError),
        ({"daily_orders": 0}, ValueError),
        ({"average_order_value": -1}, ValueError),
        ({"logistic_fee_base": float("nan")}, ValueError),
        ({"marketplace_commission_rate": 150}, ValueError),
        ({"deliveries_per_driver": 0}, ValueError),
        ({"daily_orders": "1000"}, TypeError),
    ],
)
def test_invalid_parameters_fail_before_loop(overrides, exc):
    eng = SimulationEngine(_params(**overrides))
    with pytest.raises(exc):
        eng.run()
    assert eng.results == []


def test_report_and_export_require_a_run():
    eng = SimulationEngine(_params())
    with pytest.raises(RuntimeError):
        eng.report()
    with pytest.raises(RuntimeError):
        eng.export()


def test_report_and_export_structure():
    eng = SimulationEngine(_params(simulation_days=10), seed=3)
    out = eng.run()
    text = eng.report()
    assert "# Financial Simulation Report" in text
    assert "10 days" in text
    assert "## Next Steps" in text
    assert "5. Scale up gradually" in text
    for rec in out.recommendations:
        assert rec in text

    export = eng.export()
    assert set(export) == {"parameters", "results", "metrics", "recommendations"}
    assert export["parameters"]["dailyOrders"] == 1000
    assert len(export["results"]) == 10
    assert export["metrics"]["breakEvenDay"] == out.metrics.break_even_day
    governed = [r for r in export["results"] if "governanceAction" in r]
    assert all("logisticFee" in r["adjustments"] for r in governed)
    json.dumps(export)


def test_report_when_break_even_never_reached():
    params = _params(average_order_value=0, marketplace_commission_rate=0, logistic_fee_base=0, simulation_days=5)
    eng = SimulationEngine(params, variation=False, opening_balance=-50_000)
    out = eng.run()
    assert out.metrics.break_even_day == 0
    text = eng.report()
    assert "not reached" in text
    assert "Break-even day" not in text


def test_results_frame_one_row_per_day():
    eng = SimulationEngine(_params(simulation_days=7), seed=11)
    eng.run()
    df = eng.results_frame()
    assert len(df) == 7
    assert list(df["Day"]) == list(range(1, 8))
    assert df["FundBalance"].iloc[-1] == pytest.approx(eng.fund_balance)


def test_parameters_from_camel_and_snake_keys():
    camel = SimulationParameters.from_dict({
        "dailyOrders": 800, "averageOrderValue": 45, "marketplaceCommissionRate": 12,
        "logisticFeeBase": 0.75, "activeDeliverys": 40, "deliveriesPerDriver": 20,
        "simulationDays": 30, "seed": 5,
    })
    assert camel == apply_preset("conservative")
    assert SimulationParameters.from_dict(camel.to_dict()) == camel
    with pytest.raises(KeyError):
        SimulationParameters.from_dict({"dailyOrders": 10})


def test_apply_preset_unknown_name():
    with pytest.raises(KeyError):
        apply_preset("pessimistic")


def test_apply_preset_with_overrides():
    params = apply_preset("optimistic", {"simulationDays": 7})
    assert params.daily_orders == 1500
    assert params.simulation_days == 7


def test_run_monte_carlo_reproducible():
    params = _params(daily_orders=100, simulation_days=5)
    run_df, stats_df = run_monte_carlo(params, n_runs=5, base_seed=123, batch_size=2)
    assert len(run_df) == 5
    assert "stat" in stats_df.columns
    assert "risk" in set(stats_df["stat"])
    run_df2, stats_df2 = run_monte_carlo(params, n_runs=5, base_seed=123, batch_size=2)
    pd.testing.assert_frame_equal(run_df, run_df2)
    pd.testing.assert_frame_equal(stats_df, stats_df2)


def test_run_monte_carlo_progress_callback():
    ticks: list[int] = []

    def cb(done: int, total: int) -> None:
        ticks.append(done)

    run_monte_carlo(_params(simulation_days=3), n_runs=4, base_seed=1, batch_size=2, progress_cb=cb)
    assert ticks[0] == 0
    assert ticks[-1] == 4


def test_run_monte_carlo_rejects_zero_runs():
    with pytest.raises(ValueError):
        run_monte_carlo(_params(), n_runs=0)


def test_cvar_averages_lower_tail():
    values = pd.Series(range(1, 101), dtype=float)
    # 5% quantile is 5.95, so the tail is 1..5
    assert _cvar(values, alpha=0.05) == pytest.approx(3.0)
    assert _cvar(values, alpha=1.0) == pytest.approx(values.mean())
    assert math.isnan(_cvar([], alpha=0.05))


def test_summarize_metrics_handles_empty():
    assert summarize_metrics(pd.DataFrame()).empty


def test_run_scenario_accepts_name_dict_and_parameters():
    df1, out1 = engine.run_scenario("realistic", {"simulationDays": 5}, seed=1)
    df2, out2 = engine.run_scenario({"simulationDays": 5, "seed": 1})
    df3, out3 = engine.run_scenario(apply_preset("realistic", {"simulationDays": 5}), seed=1)
    assert len(df1) == 5
    pd.testing.assert_frame_equal(df1, df2)
    pd.testing.assert_frame_equal(df1, df3)
    assert out1.metrics == out3.metrics


def test_load_config_picks_engine_flags():
    params, opts = engine.load_config({
        "scenario": "conservative",
        "simulationDays": 12,
        "seed": "4",
        "variation": 0,
        "openingBalance": 2500,
    })
    assert params.daily_orders == 800
    assert params.simulation_days == 12
    assert opts == {"seed": 4, "variation": False, "opening_balance": 2500.0}


def test_load_config_unknown_scenario():
    with pytest.raises(KeyError):
        engine.load_config({"scenario": "nope"})

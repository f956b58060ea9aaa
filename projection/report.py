# projection/report.py

import os

import pandas as pd


def _money(value):
    if value is None or pd.isna(value):
        return "-"
    return f"${value:,.2f}"


def print_projection(result, title="Projection"):
    print(f"\n--- {title.upper()} ---")
    print(f"{'Age':<8}{'Date':<9}{'Phase':<14}{'Balance':>17}{'Contrib/yr':>14}"
          f"{'Withdrawal/yr':>16}{'Safe':>16}{'Surplus':>16}")
    for p in result.history:
        print(f"{p.age:>6.2f}  {p.date or '':<9}{p.phase:<14}"
              f"{_money(p.balance):>17}{_money(p.contribution):>14}"
              f"{_money(p.withdrawal):>16}{_money(p.safe_bucket):>16}{_money(p.surplus_bucket):>16}")

    print()
    print(f"Balance at retirement:      {_money(result.balance_at_retirement)}")
    print(f"Balance at end:             {_money(result.balance_at_end)}")
    print(f"Required capital (annuity): {_money(result.required_capital_at_retirement)}")
    print(f"Required capital (perp.):   {_money(result.required_capital_for_perpetuity)}")
    print(f"Surplus:                    {_money(result.surplus)}")
    if result.ran_out_at_age is not None:
        print(f"Money runs out at age {result.ran_out_at_age:.2f}")
    rng = result.simulation_range
    if rng is not None:
        print(f"Monte Carlo ({rng.iterations} runs): p25 {_money(rng.p25_balance)}"
              f"  p75 {_money(rng.p75_balance)}  success {rng.success_rate:.1%}")


def write_projection_csv(result, filename_prefix="projection_output"):
    """Write <prefix>.csv (history) and <prefix>_summary.csv (one row of figures)."""
    history_file = f"{filename_prefix}.csv"
    summary_file = f"{filename_prefix}_summary.csv"
    out_dir = os.path.dirname(history_file)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    result.to_frame().to_csv(history_file, index=False)
    pd.DataFrame([result.summary()]).to_csv(summary_file, index=False)
    print(f"Saved CSV output to {history_file}")
    return history_file, summary_file

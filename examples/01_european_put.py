#!/usr/bin/env python3
"""
European Put by Explicit Euler Monte Carlo.

Prices an in-the-money put (K=65, S=60, T=0.25, r=0.08, σ=0.3) with
each random engine and compares against Black-Scholes. Then shows how the
standard error shrinks as the number of paths grows.

Key Concepts:
- The Euler estimate converges to Black-Scholes as steps and paths grow
- Standard error scales as 1/√N
- Different engines give statistically equivalent, not identical, prices

Usage:
    python examples/01_european_put.py          # Full demo
    python examples/01_european_put.py --ci     # CI mode (fewer paths)
"""

import argparse
import sys

# Add src to path if running as script
sys.path.insert(0, "src")

from euler_pricing import (
    EngineType,
    OptionConfigurationBuilder,
    PricingEngine,
    SimulationConfig,
    black_scholes_price,
    convergence_analysis,
    validate_pricing_result,
)


def compare_engines(n_paths: int, n_steps: int = 100, seed: int = 42) -> None:
    """Price the reference put with every engine."""
    option = (
        OptionConfigurationBuilder()
        .set_strike(65.0)
        .set_expiry(0.25)
        .set_rate(0.08)
        .set_volatility(0.3)
        .set_spot(60.0)
        .set_n_simulations(n_paths)
        .set_dividend(0.0)
        .set_option_type("put")
        .build()
    )
    analytical = black_scholes_price(option)
    engine = PricingEngine(SimulationConfig(n_steps=n_steps, seed=seed))

    print(f"\nReference put, {n_paths} paths x {n_steps} steps")
    print(f"Black-Scholes: {analytical:.4f}")
    print("-" * 64)
    print(f"{'Engine':<22}{'Price':>10}{'SD':>10}{'SE':>10}{'Error':>12}")

    for engine_type in EngineType:
        if not engine_type.is_known:
            continue
        result = engine.price(option, engine_type)
        report = validate_pricing_result(result, option=option, analytical_price=analytical)
        flag = "" if report.passed else "  HALT"
        print(
            f"{result.engine_description:<22}{result.price:>10.4f}"
            f"{result.standard_deviation:>10.4f}{result.standard_error:>10.4f}"
            f"{result.price - analytical:>12.4f}{flag}"
        )


def show_convergence(path_counts: list[int]) -> None:
    """Standard error against path count."""
    option = OptionConfigurationBuilder.defaults().set_n_simulations(path_counts[0]).build()
    analytical = black_scholes_price(option)
    analysis = convergence_analysis(option, analytical, path_counts=path_counts)

    print(f"\nDefault call (Black-Scholes {analytical:.4f})")
    print("-" * 64)
    print(f"{'Paths':>10}{'Price':>12}{'SE':>12}{'|Error|':>12}{'In 95% CI':>12}")
    for row in analysis["results"]:
        print(
            f"{row['n_paths']:>10}{row['mc_price']:>12.4f}{row['standard_error']:>12.5f}"
            f"{row['absolute_error']:>12.5f}{str(row['within_ci']):>12}"
        )
    print(f"\nSE convergence rate: {analysis['standard_error_rate']:.3f} (theory: -0.5)")


def main() -> None:
    parser = argparse.ArgumentParser(description="European put Euler MC demo")
    parser.add_argument("--ci", action="store_true", help="CI mode (fewer paths)")
    args = parser.parse_args()

    if args.ci:
        compare_engines(n_paths=5_000)
        show_convergence([500, 2_000, 8_000])
    else:
        compare_engines(n_paths=50_000)
        show_convergence([1_000, 4_000, 16_000, 64_000])


if __name__ == "__main__":
    main()

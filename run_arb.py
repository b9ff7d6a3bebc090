#!/usr/bin/env python3
"""
Two-pool Raydium CPMM arbitrage CLI.

Usage:
    python3 run_arb.py
    python3 run_arb.py --amount-in 0.5 --simulate-only false
    python3 run_arb.py config show
"""

import sys

from amm_arb.cli import main

if __name__ == "__main__":
    sys.exit(main())

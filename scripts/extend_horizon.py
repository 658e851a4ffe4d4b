"""
One-shot horizon check, for cron setups that run without the API process.

    python scripts/extend_horizon.py
"""

import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "backend"))

import logging

from garden_booking.services.horizon_checker import run_horizon_check


def main():
    logging.basicConfig(level=logging.INFO)
    run_horizon_check()


if __name__ == "__main__":
    main()

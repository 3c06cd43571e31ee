"""
BTC Treasury Portfolio Monitor (mnav-pilot)

A paper-only monitor for a portfolio built around bitcoin and a bitcoin
treasury equity. It values holdings at live prices, alerts on allocation
drift, proposes rebalancing trades, reports the mNAV valuation signal,
flags tax-loss harvesting candidates and projects future value with
Monte Carlo simulation.

Recommendations are advisory only. No trades are executed.
"""

__version__ = "0.1.0"
__author__ = "mnav-pilot Team"

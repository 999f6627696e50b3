"""
Core Exchange System

A peer-to-peer currency exchange ledger: multi-currency accounts, transfer
proposals that the recipient accepts or rejects, and atomic settlement with
fixed-rate conversion. All monetary values use Decimal.
"""

__version__ = "1.0.0"

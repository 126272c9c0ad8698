"""
SDK for AI Credit Watch.

Provides programmatic access to the account balance endpoint.
"""

from .balance_client import BalanceClient, parse_balance_payload

__all__ = ["BalanceClient", "parse_balance_payload"]

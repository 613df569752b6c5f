"""
Asset Ledger - Source Package

The core of a personal multi-asset finance tracker: wallets in fiat,
crypto, metals and stocks, the transactions that move their balances,
and converted totals built on externally fetched rates.

DESIGN PRINCIPLES:
1. Balances are derived from transaction effects, never edited directly
2. Network failures degrade to last-known rates, never to crashes
3. Missing conversions are reported as absent, never as zero
4. Every ledger mutation is auditable
5. Storage and price sources are swappable
"""

__version__ = "1.0.0"

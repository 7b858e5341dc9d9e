"""
NomadFinance - Source Package

A personal finance tracker that runs as a Telegram mini-app.

DESIGN PRINCIPLES:
1. The host container owns identity; we only trust its user id
2. Local state is a cache, the remote store is the source of truth
3. Mutations show up instantly and reconcile in the background
4. Nothing is fatal: failures narrow the UI, they never crash it
"""

__version__ = "1.0.0"
__author__ = "NomadFinance Team"

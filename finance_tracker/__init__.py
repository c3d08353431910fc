"""
Finance Tracker - Live Aggregation Package

Keeps a personal-finance dashboard (expenses, subscriptions, investments)
continuously correct while the data changes underneath it in a remote
document store.

DESIGN PRINCIPLES:
1. The store is the source of truth; we only observe and derive
2. Every snapshot replaces, never patches
3. Derived numbers are recomputed from scratch, never adjusted
4. One flaky stream never blanks the whole dashboard
5. Every connection change is auditable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"

"""
Leftover Engine

Budget calculation engine for a household budgeting tool: answers "how
much money is left at the end of the month?" from recurring bills and
incomes, per-month overrides, expenses and account balances.

DESIGN PRINCIPLES:
1. Templates are blueprints, months are snapshots
2. Fail early, fail visibly
3. No silent corrections
4. Money is integer cents, never floats
5. Storage layer is swappable
"""

from leftover_engine.session import BudgetSession

__version__ = "1.0.0"
__author__ = "Leftover Engine Team"

__all__ = ["BudgetSession"]

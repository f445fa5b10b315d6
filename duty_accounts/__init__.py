"""
Duty Accounts - Source Package

Directory resolution and record reconciliation for the bank accounts
of election-duty personnel (field officers, assistant officers and
supervisors).

DESIGN PRINCIPLES:
1. Validate locally, then write
2. Fail early, fail visibly
3. Directory writes are best-effort, the account write is not
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Duty Accounts Team"

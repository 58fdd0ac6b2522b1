"""
chrono-ledger - bitemporal, append-only version store.

Keeps, for every entity, a non-overlapping sequence of half-open valid-time
intervals each holding an immutable value, and answers point-in-time and
as-recorded questions about it.
"""

__version__ = "0.1.0"

from chronoledger.core import *  # noqa

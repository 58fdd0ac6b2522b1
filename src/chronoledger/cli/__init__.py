"""Command-line interface for chrono-ledger (``chronoledger``)."""

"""End-to-end tests against the SQLite store and the ``python -m venafi_pki`` CLI."""

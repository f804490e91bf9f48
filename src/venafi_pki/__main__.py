"""Module entrypoint for ``python -m venafi_pki``."""

from __future__ import annotations

from venafi_pki.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())

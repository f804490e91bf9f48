"""
venafi-pki — role management for a Venafi certificate-issuance backend.

Purpose
- Package root. Roles bind an upstream authority (Trust Protection Platform,
  Venafi Cloud, or a fake CA), its credentials, issuance policy, and storage
  policy. This package validates, stores, and serves them.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

"""
Lending Utilities Package
=========================

Provides utility functions for:
- Money rounding and formatting (money)
- EMI amortization and penalty breakdown (emi)

Import directly from submodules to avoid circular imports.
"""

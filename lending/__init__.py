"""
Lending workflow engine.

A Django app implementing the loan request lifecycle: the state registry and
permission matrix, the transition executor, the EMI amortization engine and
the append-only audit trail.
"""

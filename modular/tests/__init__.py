"""
Test suite for the modular engine.

Focus areas:
- Dependency sorting and cycle detection
- Fold order and restricted dependency snapshots
- Effect optimization
- Registry persistence and idempotence
- Enhancer installation and external dependency checks
"""

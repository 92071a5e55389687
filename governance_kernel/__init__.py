"""
Governance Kernel

The single decision core every balance-affecting back-office action passes
through before a document may change state:
- Permission checks
- Segregation-of-duties enforcement
- Accounting period control
- Double-entry balance, dimension and tax integrity validation
- Shared document lifecycle state machine
- Deterministic report/audit identity
"""

__version__ = "0.1.0"

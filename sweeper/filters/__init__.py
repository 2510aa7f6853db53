"""Resource filtering modules.

ProtectionFilter exempts resources carrying the operator's protection tag.
"""

from sweeper.filters.protection import ProtectionDecision, ProtectionFilter, Verdict

__all__ = ["ProtectionDecision", "ProtectionFilter", "Verdict"]

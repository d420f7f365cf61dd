from __future__ import annotations

# Re-export the index surface for centralized imports.

from ruleindex.index.facade import ActiveRuleIndex, build_active_rule_index
from ruleindex.index.projector import project_active_rule
from ruleindex.index.query import ActiveRuleQuery
from ruleindex.index.refresh import VisibilityController
from ruleindex.index.store import DocumentIndex
from ruleindex.index.writer import ActiveRuleIndexWriter

__all__ = [
    "ActiveRuleIndex",
    "build_active_rule_index",
    "project_active_rule",
    "ActiveRuleQuery",
    "VisibilityController",
    "DocumentIndex",
    "ActiveRuleIndexWriter",
]

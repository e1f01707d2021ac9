"""Activity tracking for agent panes."""

from agent_workbench.activity.attention import AttentionAggregator, AttentionEntry
from agent_workbench.activity.classifier import ActivityClassifier, ActivityState

__all__ = ["ActivityClassifier", "ActivityState", "AttentionAggregator", "AttentionEntry"]

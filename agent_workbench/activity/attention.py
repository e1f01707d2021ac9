"""Which agent sessions are waiting on the user, grouped by project."""

from __future__ import annotations

from dataclasses import dataclass

from agent_workbench.activity.classifier import ActivityClassifier
from agent_workbench.workspace.store import WorkspaceStore


@dataclass(frozen=True)
class AttentionEntry:
    tab_id: str
    pane_id: str
    session_type: str
    needs_attention: bool
    label: str
    worktree_path: str | None = None
    session_id: str | None = None


class AttentionAggregator:
    """Memoized view over the workspace store and the activity classifier.

    Holds no state of its own beyond the memo, which both inputs invalidate
    through their listeners.
    """

    def __init__(self, store: WorkspaceStore, classifier: ActivityClassifier) -> None:
        self.store = store
        self.classifier = classifier
        self._memo: dict[str, tuple[AttentionEntry, ...]] | None = None
        store.subscribe(self.invalidate)
        classifier.subscribe(lambda _pane_id, _state: self.invalidate())

    def invalidate(self) -> None:
        self._memo = None

    def by_project(self) -> dict[str, tuple[AttentionEntry, ...]]:
        """Project path -> entries, in workspace then tab order."""
        if self._memo is None:
            self._memo = self._compute()
        return self._memo

    def needing_attention(self) -> list[AttentionEntry]:
        return [e for entries in self.by_project().values() for e in entries if e.needs_attention]

    def active_project_paths(self) -> list[str]:
        return list(self.by_project())

    def _compute(self) -> dict[str, tuple[AttentionEntry, ...]]:
        grouped: dict[str, list[AttentionEntry]] = {}
        for ws in self.store.workspaces:
            for tab in ws.agent_tabs():
                pane = tab.ai_pane()
                if pane is None:
                    continue
                grouped.setdefault(ws.project_path, []).append(
                    AttentionEntry(
                        tab_id=tab.id,
                        pane_id=pane.id,
                        session_type=tab.session_type or "",
                        needs_attention=not self.classifier.is_in_progress(pane.id),
                        label=tab.label,
                        worktree_path=ws.worktree_path,
                        session_id=pane.session_id,
                    )
                )
        return {path: tuple(entries) for path, entries in grouped.items()}

"""
Debug tracing infrastructure for pipeflow.

This module provides data structures for capturing what the sync
coordinator did with a buffer: which stages ran, what they produced, and
which intents were patched into the text. When debug mode is enabled, the
coordinator records every reparse and every applied intent.

This is primarily useful for:
1. Debugging sync issues (why a node ended up where it did)
2. Understanding the reparse flow (seeing intermediate states)
3. Writing targeted tests (verifying specific patch decisions)

Usage:
    >>> coordinator = SyncCoordinator(text, debug=True)
    >>> coordinator.rename("P1", "Step1")
    >>> trace = coordinator.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("sync_trace.txt")

The trace captures:
- Stages (canonicalize, parse, layout, write_back, graph, patch, deferred)
- Optional text snapshots at each stage
- Every applied intent with the buffer before and after
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PatchRecord:
    """
    Record of a single intent handed to the text patcher.

    Attributes:
        intent: The intent that was applied
        changed: Whether the buffer changed
        before: Buffer before the patch
        after: Buffer after the patch
    """

    intent: Any
    changed: bool
    before: str
    after: str

    def __str__(self) -> str:
        status = "changed" if self.changed else "no-op"
        return f"{self.intent!r} [{status}]"


@dataclass
class TraceStage:
    """
    Snapshot of state at one stage of a reparse or patch.

    Attributes:
        name: Name of this stage
        data: Dictionary of relevant data at this stage
        text_snapshot: Optional list of buffer lines at this point
    """

    name: str
    data: Dict[str, Any]
    text_snapshot: Optional[List[str]] = None

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        if self.text_snapshot:
            lines.append("  Text preview (first 15 lines):")
            for row in self.text_snapshot[:15]:
                lines.append(f"    |{row}")
        return "\n".join(lines)


@dataclass
class SyncTrace:
    """
    Complete trace of a coordinator's activity.

    Attributes:
        stages: Stages in the order they ran
        patches: Every intent handed to the patcher
        adapter_name: Adapter selected when the trace started
    """

    stages: List[TraceStage] = field(default_factory=list)
    patches: List[PatchRecord] = field(default_factory=list)
    adapter_name: Optional[str] = None

    def add_stage(self, name: str, data: Dict[str, Any], text: Optional[str] = None) -> None:
        """
        Add a stage snapshot.

        Args:
            name: Name of the stage (e.g., "layout")
            data: Dictionary of relevant data at this stage
            text: Optional buffer to snapshot
        """
        snapshot = text.split("\n") if text is not None else None
        self.stages.append(TraceStage(name, dict(data), snapshot))

    def add_patch(self, intent: Any, changed: bool, before: str, after: str) -> None:
        self.patches.append(PatchRecord(intent, changed, before, after))

    def get_stage(self, name: str) -> Optional[TraceStage]:
        """Get the first stage with the given name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_stages(self, name: str) -> List[TraceStage]:
        return [stage for stage in self.stages if stage.name == name]

    def get_noop_patches(self) -> List[PatchRecord]:
        """Intents whose anchor was not found in the buffer."""
        return [p for p in self.patches if not p.changed]

    def clear(self) -> None:
        self.stages.clear()
        self.patches.clear()

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Stage overview
        - Patch statistics
        """
        lines = [
            "=" * 60,
            "SYNC TRACE SUMMARY",
            "=" * 60,
            "",
            f"Adapter: {self.adapter_name or '(first)'}",
            f"Stages: {len(self.stages)}",
        ]

        for stage in self.stages:
            has_text = "+" if stage.text_snapshot else "-"
            lines.append(f"  [{has_text}] {stage.name}")

        lines.extend(
            [
                "",
                f"Patches applied: {len(self.patches)}",
                f"No-op patches: {len(self.get_noop_patches())}",
                "",
            ]
        )

        kind_counts: Dict[str, int] = {}
        for p in self.patches:
            kind = type(p.intent).__name__
            kind_counts[kind] = kind_counts.get(kind, 0) + 1

        lines.append("Patches by intent:")
        for kind, count in sorted(kind_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {kind}: {count}")

        return "\n".join(lines)

    def dump(self) -> str:
        """Generate a complete human-readable dump of the trace."""
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("PATCHES:")
        lines.append("-" * 40)
        for p in self.patches:
            lines.append(str(p))

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())

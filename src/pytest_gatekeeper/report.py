# src/pytest_gatekeeper/report.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from pytest_gatekeeper.graph.tree import DependentTest, group_dependents, render_dependency_tree
from pytest_gatekeeper.schemas import GatekeeperResult, GatekeeperSummary
from pytest_gatekeeper.utils.logging import strip_ansi

RULE_WIDTH = 70
ERROR_PREVIEW_CHARS = 50

_SKIP_ROOT = re.compile(r"dependency '([^']+)' (failed|did not complete)")


@dataclass
class SkipInfo:
    title: str
    nodeid: str
    reason: str

    @property
    def dependency_key(self) -> Optional[str]:
        match = _SKIP_ROOT.search(self.reason)
        return match.group(1) if match else None


@dataclass
class DependencyReport:
    """Collects per-test outcomes during the session and renders the end-of-run summary."""

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    skips: List[SkipInfo] = field(default_factory=list)
    dependents: List[tuple] = field(default_factory=list)

    def record(
        self,
        nodeid: str,
        title: str,
        outcome: str,
        *,
        skip_reason: str = "",
        depends_on: Sequence[str] = (),
        rerun: int = 0,
    ) -> None:
        if outcome == "passed":
            self.passed += 1
        elif outcome == "failed":
            self.failed += 1
        elif outcome == "skipped":
            self.skipped += 1
            self.skips.append(SkipInfo(title=title, nodeid=nodeid, reason=skip_reason or "Unknown reason"))

        if depends_on:
            test = DependentTest(title=title, outcome=outcome, flaky=outcome == "passed" and rerun > 0)
            self.dependents.append((list(depends_on), test))

    @property
    def dependency_skips(self) -> List[SkipInfo]:
        return [s for s in self.skips if s.dependency_key is not None]

    @property
    def other_skips(self) -> List[SkipInfo]:
        return [s for s in self.skips if s.dependency_key is None]

    def render(
        self,
        summary: GatekeeperSummary,
        results: Mapping[str, GatekeeperResult],
        dependencies: Mapping[str, Sequence[str]],
    ) -> List[str]:
        lines: List[str] = ["", "═" * RULE_WIDTH, "  DEPENDENCY ORCHESTRATION SUMMARY", "═" * RULE_WIDTH]

        total = self.passed + self.failed + self.skipped
        lines.append("")
        lines.append(f"  Total: {total} | Passed: {self.passed} | Failed: {self.failed} | Skipped: {self.skipped}")

        if summary.total > 0:
            lines.append("")
            lines.append(
                f"  Gatekeepers: {summary.total} registered | {summary.passed} passed | {summary.failed} failed"
            )
            failed = [(k, r) for k, r in results.items() if not r.passed]
            if failed:
                lines.append("")
                lines.append("  ❌ Failed Gatekeepers:")
                for key, result in failed:
                    preview = _error_preview(result.error)
                    lines.append(f"     • {key}{': ' + preview if preview else ''}")

        dependency_skips = self.dependency_skips
        if dependency_skips:
            lines.append("")
            lines.append(f"  ⏭️  Tests skipped due to dependencies: {len(dependency_skips)}")
            by_root: Dict[str, List[SkipInfo]] = {}
            for skip in dependency_skips:
                by_root.setdefault(skip.dependency_key, []).append(skip)
            for key, skips in by_root.items():
                lines.append("")
                lines.append(f"     Due to '{key}' failure:")
                for skip in skips:
                    lines.append(f"       - {skip.title}")

        other_skips = self.other_skips
        if other_skips:
            lines.append("")
            lines.append(f"  ⏭️  Other skipped tests: {len(other_skips)}")
            for skip in other_skips:
                lines.append(f"     • {skip.title}: {skip.reason}")

        if self.dependents or summary.total > 0:
            lines.append("")
            lines.append("─" * RULE_WIDTH)
            lines.append("  DEPENDENCY TREE")
            lines.append("─" * RULE_WIDTH)
            lines.append("")
            lines.extend(render_dependency_tree(results, dependencies, group_dependents(self.dependents)))

        lines.append("")
        lines.append("═" * RULE_WIDTH)
        return lines


def _error_preview(error: Optional[str]) -> str:
    lines = strip_ansi(error or "").strip().splitlines()
    first = lines[0] if lines else ""
    if len(first) > ERROR_PREVIEW_CHARS:
        return first[:ERROR_PREVIEW_CHARS] + "..."
    return first

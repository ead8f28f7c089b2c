"""
Clinic Signal Engine — Tag Reconciler

Diffs this pass's matched rules against the tags already stored on the
clinic, and rolls per-clinic results up into the audit summary.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from clinicops.models import Clinic, MetricsSnapshot, Suggestion, SuggestionType
from clinicops.rules import RuleEvaluator
from clinicops.scoring import severity_score


@dataclass
class TagDiff:
    added: list[str] = field(default_factory=list)
    resolved: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.resolved)


def reconcile(previous: Sequence[str], matched: Sequence[str]) -> TagDiff:
    """
    Set difference by rule ID.

    added keeps the order of ``matched``, resolved keeps the order of
    ``previous``. Duplicates in either input are ignored.
    """
    prev_set = set(previous)
    match_set = set(matched)
    added = [t for t in dict.fromkeys(matched) if t not in prev_set]
    resolved = [t for t in dict.fromkeys(previous) if t not in match_set]
    return TagDiff(added=added, resolved=resolved)


@dataclass
class ClinicAnalysis:
    """Tag outcome for one clinic in one pass."""

    slug: str
    tags: list[str]
    suggestions: list[Suggestion]
    severity_score: int
    diff: TagDiff
    rule_errors: list[str] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for s in self.suggestions if s.type == SuggestionType.CRITICAL)


def analyze_clinic(
    clinic: Clinic,
    metrics: MetricsSnapshot,
    now: datetime,
    evaluator: RuleEvaluator | None = None,
) -> ClinicAnalysis:
    """Evaluate rules, score the result and reconcile against stored tags."""
    evaluator = evaluator or RuleEvaluator()
    result = evaluator.evaluate(clinic, metrics, now)
    return ClinicAnalysis(
        slug=clinic.slug,
        tags=result.matched,
        suggestions=result.suggestions,
        severity_score=severity_score(result.matched),
        diff=reconcile(clinic.tags, result.matched),
        rule_errors=[str(e) for e in result.rule_errors],
    )


@dataclass
class TagSummary:
    total_processed: int = 0
    new_tags: int = 0
    resolved_tags: int = 0
    critical_issues: int = 0
    average_score: float = 0.0
    tag_distribution: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalProcessed": self.total_processed,
            "newTags": self.new_tags,
            "resolvedTags": self.resolved_tags,
            "criticalIssues": self.critical_issues,
            "averageScore": self.average_score,
            "tagDistribution": dict(self.tag_distribution),
        }


def summarize(analyses: Iterable[ClinicAnalysis]) -> TagSummary:
    """Aggregate per-clinic analyses into pass totals."""
    summary = TagSummary()
    score_total = 0
    for analysis in analyses:
        summary.total_processed += 1
        summary.new_tags += len(analysis.diff.added)
        summary.resolved_tags += len(analysis.diff.resolved)
        summary.critical_issues += analysis.critical_count
        score_total += analysis.severity_score
        for tag in analysis.tags:
            summary.tag_distribution[tag] = summary.tag_distribution.get(tag, 0) + 1
    if summary.total_processed:
        summary.average_score = round(score_total / summary.total_processed, 1)
    return summary

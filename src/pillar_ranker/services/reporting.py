"""Plain-text reports for batch results and leaderboards."""

from __future__ import annotations

from tabulate import tabulate

from pillar_ranker.models import BatchResult, EntityKind, EntityScoreView

SUMMARY_HEADERS = ("Kind", "Status", "Updated", "Ranked", "Skipped", "Duration (ms)")
LEADERBOARD_HEADERS = ("Rank", "Name", "Slug", "Score", "Pillars")


def format_score(score: float) -> str:
    """Format a score with the display contract of 2 decimals."""
    return f"{score:.2f}"


def render_batch_summary(result: BatchResult) -> str:
    """Render a batch result as a markdown table.

    Args:
        result: Completed batch result.

    Returns:
        Markdown with one row per kind and a status line.
    """
    rows = [
        (
            kind.plural,
            "ok" if r.success else "FAILED",
            r.updated_count,
            r.ranked_count,
            r.skipped_count,
            r.duration_ms,
        )
        for kind, r in result.per_type.items()
    ]
    status = "success" if result.success else "degraded"
    if result.per_type and len(result.failed_kinds) == len(result.per_type):
        status = "failed"

    lines = [tabulate(rows, headers=SUMMARY_HEADERS, tablefmt="github"), ""]
    lines.append(f"Status: {status} in {result.total_duration_ms} ms")
    for kind in result.failed_kinds:
        lines.append(f"  {kind.plural}: {result.per_type[kind].error}")
    return "\n".join(lines)


def render_leaderboard(kind: EntityKind, entries: list[EntityScoreView]) -> str:
    """Render the top ranked entities of a kind as a markdown table."""
    lines = [f"# Top {kind.plural}", ""]
    if not entries:
        lines.append("No ranked entities yet.")
        return "\n".join(lines)

    rows = [
        (f"#{e.rank}", e.name, e.slug, format_score(e.overall_score), len(e.pillar_scores))
        for e in entries
    ]
    # Scores are preformatted strings; keep trailing zeros
    lines.append(
        tabulate(rows, headers=LEADERBOARD_HEADERS, tablefmt="github", disable_numparse=True)
    )
    return "\n".join(lines)

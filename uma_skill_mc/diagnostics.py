"""
Result reporting.

DataFrame view of skill results, console table formatting, CSV/JSON export
and a short run summary.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .types import SkillResult

logger = logging.getLogger(__name__)


RESULT_COLUMNS = [
    'skill',
    'cost',
    'discount',
    'num_simulations',
    'mean_length',
    'median_length',
    'mean_length_per_cost',
    'min_length',
    'max_length',
    'ci_lower',
    'ci_upper',
    'std_error',
    'status',
]


def results_to_dataframe(results: List[SkillResult]) -> pd.DataFrame:
    """One row per skill, in the given order, with RESULT_COLUMNS."""
    rows = [r.to_dict() for r in results]
    df = pd.DataFrame(rows)
    for col in RESULT_COLUMNS:
        if col not in df.columns:
            df[col] = pd.Series(dtype=object)
    return df[RESULT_COLUMNS]


def format_results_table(
    results: List[SkillResult],
    confidence_interval: float = 95.0,
    top_n: Optional[int] = None,
) -> str:
    """Format results into readable console output, best efficiency first."""
    lines = []
    lines.append("SKILL RESULTS")
    lines.append("=" * 96)

    if not results:
        lines.append("  (no results)")
        return "\n".join(lines)

    ci_label = f"{confidence_interval:g}% CI"
    lines.append(
        f"  {'Skill':<32} {'Cost':>5} {'Mean':>8} {'Median':>8} "
        f"{'Mean/Cost':>10} {ci_label:>18} {'n':>6}"
    )
    lines.append("  " + "-" * 94)

    shown = results[:top_n] if top_n else results
    for r in shown:
        ci = f"[{r.ci_lower:.2f}, {r.ci_upper:.2f}]"
        lines.append(
            f"  {r.skill[:32]:<32} {r.cost:>5.0f} {r.mean_length:>8.3f} "
            f"{r.median_length:>8.3f} {r.mean_length_per_cost * 1000:>10.3f} "
            f"{ci:>18} {r.num_simulations:>6}"
        )

    if top_n and len(results) > top_n:
        lines.append(f"  ... {len(results) - top_n} more")

    lines.append("  (Mean/Cost shown per 1000 skill points)")
    return "\n".join(lines)


def summarize_run(summary: Dict[str, Any]) -> str:
    """Short text summary of a run_skill_evaluation() result dict."""
    if 'error' in summary:
        return f"Run failed: {summary['error']}"

    results: List[SkillResult] = summary.get('results', [])
    lines = [f"Evaluated {len(results)} skill(s)"]
    for notice in summary.get('notices', []):
        lines.append(f"  note: {notice}")
    errors = summary.get('errors', [])
    if errors:
        lines.append(f"  {len(errors)} skill(s) failed:")
        for err in errors:
            lines.append(f"    {err}")
    if results:
        best = results[0]
        lines.append(
            f"  Best value: {best.skill} "
            f"({best.mean_length:.3f} mean over {best.num_simulations} runs, cost {best.cost:.0f})"
        )
    return "\n".join(lines)


def export_results(results: List[SkillResult], path: str, include_raw: bool = False) -> None:
    """
    Write results to CSV or JSON, chosen by file extension.

    Args:
        results: Results to write
        path: Output path ending in .csv or .json
        include_raw: Include raw per-run values (JSON only)

    Raises:
        ValueError: For an unsupported extension
    """
    suffix = Path(path).suffix.lower()
    if suffix == '.csv':
        results_to_dataframe(results).to_csv(path, index=False)
    elif suffix == '.json':
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(
                [r.to_dict(include_raw=include_raw) for r in results],
                f, indent=2, ensure_ascii=False,
            )
    else:
        raise ValueError(f"Unsupported output format '{suffix}'. Use .csv or .json")
    logger.info(f"Wrote {len(results)} result(s) to {path}")

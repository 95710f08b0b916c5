"""
Report generation module for analyze_gc.
Generates the JSON report, the expected distribution table and the interactive HTML dashboard.
"""

import json
import logging
import plotly.graph_objects as go
from jinja2 import Environment, FileSystemLoader
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from analyze_gc.core.distribution import BINS, bin_midpoints, expected_density
from analyze_gc.core.models import AnalysisResult, StatKind
from analyze_gc.utils.stats import summarize_histogram

logger = logging.getLogger(__name__)

KIND_LABELS = {
    StatKind.COMBINED_GC: ("GC", "AT"),
    StatKind.G_VS_A: ("G", "A"),
    StatKind.C_VS_T: ("C", "T"),
}


def distribution_column(kind: StatKind, read_length: int) -> str:
    if kind is StatKind.COMBINED_GC:
        return f"read_len:{read_length}bp"
    return f"{kind.value}_read_len:{read_length}bp"


def build_report_document(result: AnalysisResult) -> Dict[str, Any]:
    """
    Convert a finished analysis into the JSON report structure.

    :param result: Merged analysis result.
    :return: Dictionary ready for JSON serialization.
    """
    cfg = result.config
    document: Dict[str, Any] = {"date": result.date}
    if cfg.identifier is not None:
        document["identifier"] = cfg.identifier
    document.update({
        "input": str(cfg.input_path) if cfg.input_path is not None else "<stdin>",
        "threads": cfg.threads,
        "threshold": cfg.threshold,
        "bisulfite": cfg.bisulfite,
        "read_lengths": list(cfg.read_lengths),
        "reference": dict(result.reference_stats),
    })

    results = {}
    summary = {}
    for read_length in cfg.read_lengths:
        per_kind = result.histograms[read_length]
        results[str(read_length)] = {kind.value: per_kind[kind].to_records() for kind in cfg.kinds}
        summary[str(read_length)] = {
            kind.value: dict(summarize_histogram(per_kind[kind]),
                             windows_scanned=result.windows_scanned.get(read_length, 0))
            for kind in cfg.kinds
        }
    document["results"] = results
    document["summary"] = summary
    return document


def write_json_report(document: Dict[str, Any], output_path: Path):
    """
    Write the report document as pretty-printed JSON.
    """
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2)
        f.write('\n')


def build_distribution_table(result: AnalysisResult, bins: int = BINS) -> pd.DataFrame:
    """
    Expected proportion densities for every read length and statistic kind.

    :param result: Merged analysis result.
    :param bins: Number of grid bins.
    :return: DataFrame with a 'gc' column of bin midpoints and one density column per (length, kind).
    """
    table = {"gc": bin_midpoints(bins)}
    for read_length in result.read_lengths:
        for kind in result.kinds:
            table[distribution_column(kind, read_length)] = expected_density(
                result.histogram(read_length, kind), bins
            )
    return pd.DataFrame(table)


def write_distribution_table(distribution: pd.DataFrame, output_path: Path):
    distribution.to_csv(output_path, sep='\t', index=False, encoding='utf-8')


def write_html_report(result: AnalysisResult, document: Dict[str, Any], distribution: pd.DataFrame,
                      output_path: Path):
    """
    Render the interactive HTML dashboard: one density plot per statistic kind.
    """
    plots = []
    for kind in result.kinds:
        x_label, y_label = KIND_LABELS[kind]
        fig = go.Figure()
        for read_length in result.read_lengths:
            fig.add_trace(go.Scatter(
                x=distribution["gc"].tolist(),
                y=distribution[distribution_column(kind, read_length)].tolist(),
                mode='lines',
                name=f"{read_length} bp"
            ))
        fig.update_layout(
            title=f"Expected {x_label} proportion ({x_label} vs {y_label})",
            xaxis_title=f"{x_label} / ({x_label} + {y_label})",
            yaxis_title="Density"
        )
        plots.append({"id": f"plot_{kind.value}", "title": kind.value, "json": fig.to_json()})

    template_dir = Path(__file__).parent / 'templates'
    env = Environment(loader=FileSystemLoader(str(template_dir)), autoescape=True)
    template = env.get_template('report.html')

    html_content = template.render(
        identifier=document.get("identifier"),
        date=document["date"],
        reference_stats=document["reference"],
        run_parameters={
            "Input": document["input"],
            "Threshold": document["threshold"],
            "Read lengths": ", ".join(str(rl) for rl in document["read_lengths"]),
            "Bisulfite": document["bisulfite"],
            "Threads": document["threads"],
        },
        summary=document["summary"],
        plots=plots
    )

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(html_content)


def generate_report(result: AnalysisResult, output_dir: Path, prefix: str) -> Dict[str, Path]:
    """
    Write all report files for a finished analysis.

    :param result: Merged analysis result.
    :param output_dir: Directory to save outputs.
    :param prefix: File name prefix.
    :return: Mapping of output kind ('json', 'dist', 'html') to the written path.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "json": output_dir / f"{prefix}.json",
        "dist": output_dir / f"{prefix}_dist.txt",
        "html": output_dir / f"{prefix}_report.html",
    }

    document = build_report_document(result)
    logger.debug("Writing JSON output")
    write_json_report(document, paths["json"])

    logger.debug("Writing expected distribution output")
    distribution = build_distribution_table(result)
    write_distribution_table(distribution, paths["dist"])

    logger.debug("Writing HTML report")
    write_html_report(result, document, distribution, paths["html"])
    return paths

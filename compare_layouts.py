#!/usr/bin/env python3
"""
Split keyboard layout comparison with metric filtering

Creates heatmap plots comparing layouts across analysis metrics and a
rankings table ordered by rank sum. Input tables are the CSV files written
by `score_layouts.py --csv`. Every metric is "lower is better".

Examples:
    # All available metrics (alphabetical order)
    python compare_layouts.py --tables scores.csv

    # Specific metrics in custom order, heatmap saved to a file
    python compare_layouts.py --tables scores.csv --metrics score effort sfb hdi fdi --output comparison.png

    # Rankings only
    python compare_layouts.py --tables scores.csv found.csv --metrics score sfb --rankings rankings.csv

Rankings output:
  CSV with columns: layout, [table], [metric_ranks], total_rank_sum, [metric_values]
  Layouts ordered by total rank sum (lower = better overall performance)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from splitkb.cli_utils import handle_common_errors, setup_logging

logger = logging.getLogger(__name__)


def load_score_table(file_path: str) -> pd.DataFrame:
    """
    Load one CSV written by score_layouts.py.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If there is no 'layout' column
    """
    if not Path(file_path).exists():
        raise FileNotFoundError(f"File '{file_path}' not found")
    df = pd.read_csv(file_path)
    if 'layout' not in df.columns:
        raise ValueError(f"No 'layout' column in {file_path}. Columns: {list(df.columns)}")
    logger.debug(f"Loaded {len(df)} layouts from {file_path}")
    return df


def find_available_metrics(dfs: List[pd.DataFrame]) -> List[str]:
    """Numeric columns present in any table, alphabetically."""
    all_metrics = set()
    for df in dfs:
        for col in df.columns:
            if col != 'layout' and pd.api.types.is_numeric_dtype(df[col]):
                all_metrics.add(col)
    return sorted(all_metrics)


def filter_and_order_metrics(dfs: List[pd.DataFrame], requested_metrics: Optional[List[str]] = None) -> List[str]:
    """
    Filter and order metrics based on user specification.

    Raises:
        ValueError: If none of the requested metrics is available
    """
    available_metrics = find_available_metrics(dfs)
    if not requested_metrics:
        return available_metrics

    filtered_metrics = [metric for metric in requested_metrics if metric in available_metrics]
    missing_metrics = [metric for metric in requested_metrics if metric not in available_metrics]
    if missing_metrics:
        logger.warning(f"Requested metrics not found in data: {', '.join(missing_metrics)}")
    if not filtered_metrics:
        raise ValueError(
            f"None of the requested metrics were found in the data. "
            f"Available metrics: {', '.join(available_metrics)}"
        )
    return filtered_metrics


def normalize_data(dfs: List[pd.DataFrame], metrics: List[str]) -> List[pd.DataFrame]:
    """
    Min-max normalize every metric across all tables so that 1 is best.

    Metrics without variation map to 0.5.
    """
    all_data = pd.concat(dfs, ignore_index=True)

    normalized_dfs = []
    for df in dfs:
        normalized_df = df.copy()
        for metric in metrics:
            if metric not in df.columns:
                normalized_df[metric] = np.nan
                continue
            global_min = all_data[metric].min()
            global_max = all_data[metric].max()
            if pd.notna(global_min) and pd.notna(global_max) and global_max != global_min:
                # Lower raw value = better, so invert
                normalized_df[metric] = (global_max - df[metric]) / (global_max - global_min)
            else:
                normalized_df[metric] = 0.5
        normalized_dfs.append(normalized_df)
    return normalized_dfs


def create_rankings_table(dfs: List[pd.DataFrame], table_names: List[str],
                          metrics: List[str], rankings_output: Optional[str] = None) -> pd.DataFrame:
    """Rank layouts per metric (1 = lowest value) and order them by rank sum."""
    all_rankings = []

    for df, table_name in zip(dfs, table_names):
        ranking_df = df.copy()

        rank_columns = []
        for metric in metrics:
            rank_col = f"{metric}_rank"
            if metric in ranking_df.columns:
                ranking_df[rank_col] = ranking_df[metric].rank(method='min', ascending=True)
            else:
                ranking_df[rank_col] = len(ranking_df) + 1
            rank_columns.append(rank_col)

        ranking_df['total_rank_sum'] = ranking_df[rank_columns].sum(axis=1)

        output_columns = ['layout'] + rank_columns + ['total_rank_sum'] + [m for m in metrics if m in ranking_df.columns]
        if len(dfs) > 1:
            ranking_df['table'] = table_name
            output_columns.insert(1, 'table')

        all_rankings.append(ranking_df[output_columns])

    if not all_rankings:
        return pd.DataFrame()

    final_rankings = pd.concat(all_rankings, ignore_index=True)
    final_rankings = final_rankings.sort_values('total_rank_sum', kind='mergesort').reset_index(drop=True)
    final_rankings['total_rank_sum'] = final_rankings['total_rank_sum'].round(1)

    if rankings_output:
        final_rankings.to_csv(rankings_output, index=False)
        print(f"\nRankings saved to {rankings_output}")

    print("Best performing layouts (by rank sum):")
    for i, row in enumerate(final_rankings.head(10).itertuples(), 1):
        table = f" ({row.table})" if 'table' in final_rankings.columns else ""
        print(f"  {i:2d}. {row.layout}{table} - Rank Sum: {row.total_rank_sum}")

    return final_rankings


def create_heatmap_plot(dfs: List[pd.DataFrame], metrics: List[str],
                        output_path: Optional[str] = None) -> Optional[str]:
    """
    Heatmap with layouts on the y-axis and metrics on the x-axis.

    Layouts are sorted by average normalized value within each table.

    Returns:
        Path of the saved image, or None when the plot was shown
    """
    normalized_dfs = normalize_data(dfs, metrics)

    all_data = []
    layout_names = []
    for df in normalized_dfs:
        if df.empty:
            continue
        table_matrix = df[metrics].fillna(0.0).to_numpy(dtype=float)
        sort_indices = np.argsort(table_matrix.mean(axis=1), kind='stable')[::-1]
        all_data.extend(table_matrix[sort_indices].tolist())
        layout_names.extend(df['layout'].astype(str).to_numpy()[sort_indices].tolist())

    if not all_data:
        logger.warning("No valid data found for heatmap")
        return None

    data_matrix = np.array(all_data)
    fig, ax = plt.subplots(figsize=(max(12, len(metrics) * 0.8), max(8, len(layout_names) * 0.3)))
    im = ax.imshow(data_matrix, cmap='RdYlBu', aspect='auto', vmin=0, vmax=1)

    ax.set_xticks(range(len(metrics)))
    ax.set_yticks(range(len(layout_names)))
    ax.set_xticklabels([metric.replace('_', ' ').upper() for metric in metrics], rotation=45, ha='right', fontsize=9)
    ax.set_yticklabels(layout_names, fontsize=8)

    cbar = plt.colorbar(im, ax=ax, shrink=0.8)
    cbar.set_label('Normalized (0 = worst, 1 = best)', rotation=270, labelpad=20)

    if len(layout_names) <= 20 and len(metrics) <= 15:
        for i in range(len(layout_names)):
            for j in range(len(metrics)):
                value = data_matrix[i, j]
                text_color = 'white' if value < 0.5 else 'black'
                ax.text(j, i, f'{value:.2f}', ha='center', va='center',
                        color=text_color, fontsize=7, weight='bold')

    sort_info = " (sorted within each table)" if len(dfs) > 1 else " (sorted by avg. performance)"
    ax.set_title(f'Split Layout Comparison{sort_info}\n{len(layout_names)} layouts across {len(metrics)} metrics',
                 fontsize=14, fontweight='bold', pad=20)
    ax.set_xlabel('Metrics', fontsize=12)
    ax.set_ylabel('Layouts', fontsize=12)
    plt.tight_layout()

    if output_path:
        heatmap_path = output_path.replace('.png', '_heatmap.png') if output_path.endswith('.png') else output_path + '_heatmap.png'
        plt.savefig(heatmap_path, dpi=300, bbox_inches='tight', facecolor='white', edgecolor='none')
        plt.close(fig)
        print(f"Heatmap saved to {heatmap_path}")
        return heatmap_path

    plt.show()
    return None


@handle_common_errors
def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Create heatmaps and rankings comparing split keyboard layouts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python compare_layouts.py --tables scores.csv
  python compare_layouts.py --tables scores.csv --metrics score effort sfb hdi --output comparison.png
  python compare_layouts.py --tables scores.csv --rankings rankings.csv
        """
    )
    parser.add_argument('--tables', nargs='+', required=True,
                        help='One or more CSV files written by score_layouts.py --csv')
    parser.add_argument('--metrics', nargs='*',
                        help='Specific metrics to include (in order). Default: all, alphabetically')
    parser.add_argument('--output', '-o',
                        help='Output file path for the heatmap (if not specified, the plot is shown)')
    parser.add_argument('--rankings',
                        help='Create rankings table and save to CSV file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Print detailed information')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only show warnings and errors')

    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    dfs = []
    table_names = []
    for table_path in args.tables:
        df = load_score_table(table_path)
        if df.empty:
            logger.warning(f"No data found in {table_path}")
            continue
        dfs.append(df)
        table_names.append(Path(table_path).stem)

    if not dfs:
        raise ValueError("No valid data found in any table")

    metrics = filter_and_order_metrics(dfs, args.metrics)
    logger.info(f"Comparing {sum(len(df) for df in dfs)} layouts on {len(metrics)} metrics")

    if args.rankings:
        create_rankings_table(dfs, table_names, metrics, args.rankings)

    if args.output is not None or not args.rankings:
        create_heatmap_plot(dfs, metrics, args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())

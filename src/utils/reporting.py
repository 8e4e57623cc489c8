"""
Reporting utility.

Exports the stored analysis history of all hotels as one CSV table.
"""

import logging
import os
from datetime import datetime, timezone
from typing import List

import pandas as pd

from src.errors import StoreError
from src.registry.entity_registry import Entity
from src.utils.storage import ReviewStore

logger = logging.getLogger(__name__)


HISTORY_COLUMNS = [
    "hotel",
    "analysis_date",
    "total_reviews",
    "analyzed_reviews",
    "days_analyzed",
    "overall_sentiment",
    "positive_points",
    "negative_points",
    "common_themes",
    "areas_for_improvement",
]


def build_analysis_history(store: ReviewStore, entities: List[Entity]) -> pd.DataFrame:
    """
    One row per stored analysis run, newest first.

    Hotels whose results cannot be read are logged and left out.
    """
    rows = []
    for entity in entities:
        try:
            results = store.load_analysis_results(entity)
        except StoreError as e:
            logger.error(f"[{entity.name}] Failed to load analysis results: {e}")
            continue

        for result in results:
            row = result.to_dict()
            row["hotel"] = entity.name
            rows.append(row)

    df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
    if not df.empty:
        df = df.sort_values(["analysis_date", "hotel"], ascending=[False, True])
        df = df.reset_index(drop=True)
    return df


def export_analysis_history(
    store: ReviewStore,
    entities: List[Entity],
    output_dir: str
) -> str:
    """
    Write the analysis history CSV.

    Returns:
        Path to the generated CSV file
    """
    df = build_analysis_history(store, entities)

    os.makedirs(output_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    output_path = os.path.join(output_dir, f"analysis_history_{stamp}.csv")
    df.to_csv(output_path, index=False)

    logger.info(
        f"Analysis history saved to {output_path} "
        f"({len(df)} runs, {df['hotel'].nunique() if not df.empty else 0} hotels)"
    )
    return output_path

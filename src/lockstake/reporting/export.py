"""Export functionality for CSV and JSON."""

import json
import math
from typing import Any, Dict

import pandas as pd

from ..simulation.runner import SimulationResult


def snapshots_frame(result: SimulationResult) -> pd.DataFrame:
    """Ledger snapshots as a DataFrame, one row per step."""
    df = pd.DataFrame([s.to_dict() for s in result.snapshots])
    if not df.empty:
        df['t_days'] = (df['t'] - df['t'].iloc[0]) / 86_400
    return df


def export_csv(result: SimulationResult, filepath: str):
    """Export ledger snapshots to CSV."""
    snapshots_frame(result).to_csv(filepath, index=False)


def export_events_csv(result: SimulationResult, filepath: str):
    """Export the event log to CSV (columns are the union of event fields)."""
    df = pd.DataFrame(result.events.to_records())
    df.to_csv(filepath, index=False)


def _json_safe(metrics: Dict[str, Any]) -> Dict[str, Any]:
    safe = {}
    for key, value in metrics.items():
        if isinstance(value, float) and math.isinf(value):
            safe[key] = None
        else:
            safe[key] = value
    return safe


def export_json(result: SimulationResult, filepath: str):
    """Export simulation results to JSON."""
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'snapshots': [s.to_dict() for s in result.snapshots],
        'events': result.events.to_records(),
        'action_counts': result.action_counts,
        'rejections': result.rejections,
        'final_metrics': _json_safe(result.final_metrics),
        'warnings': [
            {
                'severity': w.severity,
                'category': w.category,
                'message': w.message,
                'details': w.details,
            }
            for w in result.warnings
        ],
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)

"""
End-to-end estimate pipeline:

1. Load reference data (unless supplied).
2. Decode shareable state into Parameters, or take Parameters as given.
3. Run the cost engine to produce a Breakdown.
4. Expose report/CSV and re-encoded state on the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .cost_engine import Breakdown, CostEngine
from .parameters import Parameters, default_parameters
from .reference_data import ReferenceData, load_reference_data
from .reporting import build_ledger_frame, build_report_frames, generate_csv
from .state_codec import StateDecodeError, decode_state, encode_state


@dataclass
class EstimateResult:
    params: Parameters
    breakdown: Breakdown
    reference: ReferenceData
    decode_errors: List[StateDecodeError] = field(default_factory=list)

    @property
    def diagnostics(self) -> Dict[str, Any]:
        return {
            "state": [str(e) for e in self.decode_errors],
            "cost": self.breakdown.diagnostics,
        }

    def frames(self) -> Dict[str, pd.DataFrame]:
        return build_report_frames(self.breakdown)

    def ledger(self) -> pd.DataFrame:
        return build_ledger_frame(self.breakdown)

    def to_csv(self) -> str:
        return generate_csv(self.breakdown)

    def query(self) -> Dict[str, str]:
        return encode_state(self.params, self.reference)


def run_estimate(
    *,
    params: Optional[Parameters] = None,
    query: Optional[Mapping[str, Any]] = None,
    reference: Optional[ReferenceData] = None,
) -> EstimateResult:
    """
    Execute decode + estimate and return an EstimateResult.

    When both ``params`` and ``query`` are given, the query is decoded on top
    of ``params``.
    """
    reference = reference or load_reference_data()
    errors: List[StateDecodeError] = []
    if query:
        decoded = decode_state(query, base=params, reference=reference)
        params = decoded.params
        errors = decoded.errors
    elif params is None:
        params = default_parameters(reference)

    engine = CostEngine(reference)
    breakdown = engine.calculate(params)
    return EstimateResult(params=params, breakdown=breakdown, reference=reference, decode_errors=errors)

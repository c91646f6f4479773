"""
Studio Price Calculator

Estimates software project cost and timeline from team composition, project
scope, user load and infrastructure choices.

Main entry points:
    - load_reference_data: static pricing catalog
    - CostEngine: Parameters -> Breakdown
    - encode_state / decode_state: shareable URL state
    - generate_csv: CSV report of a Breakdown
    - run_estimate: all of the above in one call
"""

from .reference_data import InfraCategory, ReferenceData, Scope, load_reference_data
from .parameters import (
    FreeTierEligibility,
    OtherService,
    Parameters,
    Role,
    SectionVisibility,
    default_parameters,
)
from .timeline import TimelineAdjustment
from .cost_engine import Breakdown, CostEngine
from .state_codec import DecodeResult, decode_state, encode_state
from .reporting import generate_csv
from .pipeline import EstimateResult, run_estimate

__all__ = [
    'InfraCategory',
    'ReferenceData',
    'Scope',
    'load_reference_data',
    'FreeTierEligibility',
    'OtherService',
    'Parameters',
    'Role',
    'SectionVisibility',
    'default_parameters',
    'TimelineAdjustment',
    'Breakdown',
    'CostEngine',
    'DecodeResult',
    'decode_state',
    'encode_state',
    'generate_csv',
    'EstimateResult',
    'run_estimate',
]

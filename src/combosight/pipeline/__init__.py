"""
ComboSight Pipeline - combo analysis orchestration.

This module handles the complete processing pipeline:
- Frame table and settings loading
- Frame indexing in delivery order
- ComboComputer execution and event counting
"""

from combosight.pipeline.orchestrator import (
    ComboOrchestrator,
    ComboRunResult,
    analyze_files,
    compute_combos,
)

__all__ = ["ComboOrchestrator", "ComboRunResult", "analyze_files", "compute_combos"]

"""
Multi-scale ensemble merging (enhanced mode).

The detector runs extra passes at rescaled inputs; this module merges their
results with the base pass. Auxiliary results are damped, results are
grouped by label and coarse top-left bucket, and each group is collapsed to
one result with a boosted mean confidence.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from models.config import EnsembleConfig
from models.detection import BoundingBox, DetectionResult, new_result_id


def group_key(result: DetectionResult, bucket_size: float = 0.1) -> str:
    """Group by label and the top-left corner truncated to bucket_size cells."""
    box = result.bounding_box
    cells = round(1 / bucket_size)
    col = int(box.left * cells)
    row = int(box.top * cells)
    return f"{result.label}_{col}_{row}"


class EnsembleMerger:
    """
    Merge base-pass and auxiliary-pass detections.

    Example:
        merger = EnsembleMerger(EnsembleConfig())
        if merger.should_run(len(base), enhanced=True):
            merged = merger.merge(base, [pass_08, pass_12])
    """

    def __init__(self, config: EnsembleConfig):
        self.config = config

    def should_run(self, base_count: int, enhanced: bool) -> bool:
        """Ensemble only runs in enhanced mode when the base pass found few objects."""
        return self.config.enabled and enhanced and base_count < self.config.trigger_cap

    def dampen(self, results: Sequence[DetectionResult]) -> List[DetectionResult]:
        return [r.with_confidence(r.confidence * self.config.damping) for r in results]

    def merge_group(self, group: Sequence[DetectionResult]) -> DetectionResult:
        """
        Collapse one group into a single result.

        A single-member group is returned unchanged. Larger groups get the
        component-wise mean box and the mean confidence times the boost,
        capped at 1.
        """
        if not group:
            raise ValueError("cannot merge an empty group")
        if len(group) == 1:
            return group[0]

        n = len(group)
        avg_conf = sum(r.confidence for r in group) / n
        box = BoundingBox(
            left=sum(r.bounding_box.left for r in group) / n,
            top=sum(r.bounding_box.top for r in group) / n,
            right=sum(r.bounding_box.right for r in group) / n,
            bottom=sum(r.bounding_box.bottom for r in group) / n,
        )
        return DetectionResult(
            id=new_result_id("ensemble"),
            label=group[0].label,
            confidence=min(1.0, avg_conf * self.config.boost),
            bounding_box=box,
            is_mock=any(r.is_mock for r in group),
        )

    def merge(
        self,
        base: Sequence[DetectionResult],
        auxiliary_passes: Sequence[Sequence[DetectionResult]] = (),
    ) -> List[DetectionResult]:
        """
        Merge the base pass with auxiliary passes.

        Args:
            base: Results from the unscaled pass (confidence unchanged)
            auxiliary_passes: Results from each rescaled pass (damped here)

        Returns:
            At most max_results merged results, most confident first
        """
        pool: List[DetectionResult] = list(base)
        for results in auxiliary_passes:
            pool.extend(self.dampen(results))

        # dicts keep insertion order, so groups stay in first-seen order
        groups: Dict[str, List[DetectionResult]] = {}
        for result in pool:
            groups.setdefault(group_key(result, self.config.bucket_size), []).append(result)

        merged = [self.merge_group(g) for g in groups.values()]
        merged.sort(key=lambda r: r.confidence, reverse=True)

        logging.debug(
            f"Ensemble merged {len(pool)} results from {1 + len(auxiliary_passes)} passes "
            f"into {len(merged)} groups"
        )
        return merged[: self.config.max_results]

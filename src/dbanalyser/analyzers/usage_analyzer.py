"""
Usage scoring: combine independent signals into a per-object usage level
"""

from typing import Any, Dict, List, Optional, Tuple

from ..config import AnalysisSettings
from ..utils.logger import get_logger
from .base import AnalysisContext, Analyzer
from .models import AnalysisResult, ObjectUsage, SignalResult, UsageAnalysis, UsageLevel
from .signals import UsageSignal, default_signals

logger = get_logger(__name__)

ACTIVE_THRESHOLD = 0.3
LOW_THRESHOLD = -0.3

LEVEL_ORDER = {
    UsageLevel.UNUSED: 0,
    UsageLevel.LOW: 1,
    UsageLevel.UNKNOWN: 2,
    UsageLevel.ACTIVE: 3,
}


def classify_score(score: float) -> UsageLevel:
    if score >= ACTIVE_THRESHOLD:
        return UsageLevel.ACTIVE
    if score >= LOW_THRESHOLD:
        return UsageLevel.LOW
    return UsageLevel.UNUSED


def score_signals(signals: List[SignalResult]) -> List[ObjectUsage]:
    """Group observations by (name, type) case-insensitively and classify the average weight"""
    grouped: Dict[Tuple[str, str], List[SignalResult]] = {}
    for signal in signals:
        key = (signal.object_name.lower(), signal.object_type.lower())
        grouped.setdefault(key, []).append(signal)

    objects = []
    for group in grouped.values():
        first = group[0]
        # classified on the rounded score
        score = round(sum(s.weight for s in group) / len(group), 3)
        objects.append(ObjectUsage(
            object_name=first.object_name,
            object_type=first.object_type,
            usage_level=classify_score(score),
            score=score,
            evidence=[s.evidence for s in group],
        ))
    return objects


def sort_usage(objects: List[ObjectUsage]) -> List[ObjectUsage]:
    """Least-used first"""
    return sorted(objects, key=lambda o: (LEVEL_ORDER[o.usage_level], o.score))


class UsageAnalyzer(Analyzer):
    """Classify tables, views, procedures and functions as Active, Low, Unused or Unknown"""

    name = 'usage'
    sections = ('usage_analysis',)

    def __init__(self, settings: Optional[AnalysisSettings] = None,
                 signals: Optional[List[UsageSignal]] = None):
        self.settings = settings
        self.signals = signals if signals is not None else default_signals()

    def analyze(self, context: AnalysisContext, result: AnalysisResult) -> Dict[str, Any]:
        self.require(result, 'schema', 'Schema')

        usage = UsageAnalysis()
        usage.server_start_time, usage.server_uptime_days = \
            context.server_queries.get_server_uptime(context.provider)

        observations: List[SignalResult] = []
        for signal in self.signals:
            if context.cancel_token is not None:
                context.cancel_token.raise_if_cancelled()
            try:
                observations.extend(signal.evaluate(context, result, usage))
            except Exception as e:
                logger.warning(f"Usage signal '{signal.name}' failed and was skipped: {e}")

        objects = score_signals(observations)
        seen = {(o.object_name.lower(), o.object_type.lower()) for o in objects}
        for object_name, object_type in self._inventory(result):
            if (object_name.lower(), object_type.lower()) not in seen:
                objects.append(ObjectUsage(object_name=object_name, object_type=object_type))

        usage.objects = sort_usage(objects)
        return {'usage_analysis': usage}

    def _inventory(self, result: AnalysisResult) -> List[Tuple[str, str]]:
        schema = result.schema
        return ([(t.full_name, 'Table') for t in schema.tables]
                + [(v.full_name, 'View') for v in schema.views]
                + [(p.full_name, 'Procedure') for p in schema.stored_procedures]
                + [(f.full_name, 'Function') for f in schema.functions])

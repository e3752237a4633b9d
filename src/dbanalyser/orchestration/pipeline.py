"""
Sequential execution of an ordered analyzer list against one connection
"""

from typing import Callable, List, Optional

from ..analyzers.base import AnalysisContext
from ..analyzers.models import AnalysisResult
from ..analyzers.registry import AnalyzerRegistry
from ..utils.logger import get_logger

logger = get_logger(__name__)

# (step, current, total, status)
ProgressCallback = Callable[[str, int, int, str], None]

RUNNING = 'running'
COMPLETED = 'completed'
FAILED = 'failed'


def notify(on_progress: Optional[ProgressCallback], step: str, current: int, total: int, status: str):
    """Progress without a subscriber is a no-op"""
    if on_progress is not None:
        on_progress(step, current, total, status)


def execute_analyzers(registry: AnalyzerRegistry, names: List[str], context: AnalysisContext,
                      result: AnalysisResult, on_progress: Optional[ProgressCallback] = None,
                      scope: Optional[str] = None):
    """Run each analyzer in order and apply its fragment to the result"""
    total = len(names)
    for position, name in enumerate(names, 1):
        if context.cancel_token is not None:
            context.cancel_token.raise_if_cancelled()

        step = f"{name} ({scope})" if scope else name
        notify(on_progress, step, position, total, RUNNING)
        logger.info(f"Running {step} [{position}/{total}]")

        try:
            fragment = registry.get(name).analyze(context, result)
        except Exception as e:
            logger.error(f"{step} failed: {e}")
            notify(on_progress, step, position, total, FAILED)
            raise
        result.apply(fragment)
        logger.debug(f"Finished {step}")

        notify(on_progress, step, position, total, COMPLETED)

"""
Utility modules
"""

from .cancellation import CancellationToken
from .logger import get_logger
from .notification import ProgressNotifier

__all__ = ['CancellationToken', 'get_logger', 'ProgressNotifier']

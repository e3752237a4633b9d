"""
Error types raised by the analysis pipeline
"""


class AnalysisError(Exception):
    """Base class for analysis errors"""


class UnknownAnalyzer(AnalysisError, ValueError):
    """Requested analyzer is not registered"""

    def __init__(self, name: str):
        super().__init__(f"Unknown analyzer: {name}")
        self.name = name


class SessionNotFound(AnalysisError, LookupError):
    """Session id does not exist or has been evicted"""

    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class PrecedenceViolation(AnalysisError, RuntimeError):
    """Analyzer was run before a section it depends on"""

    def __init__(self, analyzer: str, missing: str):
        super().__init__(f"{missing} analysis must run before {analyzer} analysis")
        self.analyzer = analyzer
        self.missing = missing


class AnalysisCancelled(AnalysisError):
    """Run was cancelled by the caller"""

    def __init__(self, message: str = "Analysis was cancelled"):
        super().__init__(message)

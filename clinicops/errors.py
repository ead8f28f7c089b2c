"""
Engine exception hierarchy.

Entity-level errors (rule, metrics, write) are caught by the orchestrator and
reported in the pass summary. Only BatchFatalError aborts a pass.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class RuleEvaluationError(EngineError):
    """A rule or trigger predicate raised while evaluating one clinic."""

    def __init__(self, rule_id: str, slug: str, cause: Exception):
        self.rule_id = rule_id
        self.slug = slug
        self.cause = cause
        super().__init__(f"rule {rule_id} failed for {slug}: {cause}")


class MetricsUnavailableError(EngineError):
    """The metrics provider is down, timed out, or returned garbage."""


class DocumentNotFoundError(EngineError):
    """A document that must exist is missing from the store."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")


class StoreWriteError(EngineError):
    """The document store rejected a write after retries were exhausted."""


class BatchFatalError(EngineError):
    """The pass cannot run at all (e.g. target clinics cannot be listed)."""

"""Custom exceptions for the job taxonomy engine."""


class JobTaxonomyError(Exception):
    """Base exception for the job taxonomy engine."""

    pass


class ConfigError(JobTaxonomyError):
    """Raised when classifier configuration is missing or invalid."""

    pass


class TaxonomyError(JobTaxonomyError):
    """Raised when the taxonomy cannot be loaded or mutated."""

    pass


class UnknownCategoryError(TaxonomyError):
    """Raised when a category id is not part of the taxonomy."""

    def __init__(self, category_id: str):
        super().__init__(f"Unknown category: {category_id}")
        self.category_id = category_id


class RemoteUpdateError(JobTaxonomyError):
    """Raised when the remote category update cannot be completed."""

    pass


class LearningError(JobTaxonomyError):
    """Raised when the learning engine cannot complete an operation."""

    pass


class ConfirmationRequiredError(LearningError):
    """Raised when a destructive operation is called without confirmation."""

    pass


class StatePersistenceError(LearningError):
    """Raised when feedback was applied in memory but its state was not saved."""

    def __init__(self, message: str, actions=None):
        super().__init__(message)
        self.actions = list(actions or [])

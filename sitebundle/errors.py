class BundleError(Exception):
    """Base class for everything the publishing pipeline raises."""


class InvalidArchiveError(BundleError):
    """Upload is not a readable ZIP archive. Fatal."""


class NoAnchorDocumentError(BundleError):
    """Archive holds no HTML document. Fatal."""

    def __init__(self, message: str = "No HTML file found in the ZIP."):
        super().__init__(message)


class MalformedEntryError(BundleError):
    """Entry name cannot be decoded. Only that entry is skipped."""

    def __init__(self, raw_name: str, reason: str):
        super().__init__(f"Malformed entry name '{raw_name}': {reason}")
        self.raw_name = raw_name


class StorageError(BundleError):
    """Object storage rejected or failed an upload."""


class AssetProcessingError(BundleError):
    """One asset could not be relocated. The run continues without it."""

    def __init__(self, original_path: str, cause: Exception):
        super().__init__(f"Error processing asset {original_path}: {cause}")
        self.original_path = original_path
        self.cause = cause

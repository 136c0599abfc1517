"""File storage adapter registry: resolves opaque sample image references."""

import os

_storage_instance = None


def get_file_storage():
    """Return the configured file storage adapter (singleton).

    Uses FakeFileStorage by default. In production, configure via the
    FILE_STORAGE_ADAPTER environment variable.
    """
    global _storage_instance
    if _storage_instance is None:
        adapter = os.environ.get("FILE_STORAGE_ADAPTER", "fake")
        if adapter == "fake":
            from production.collaborators.storage.fake_adapter import FakeFileStorage

            _storage_instance = FakeFileStorage()
        else:
            raise ValueError(f"Unknown file storage adapter: {adapter}")
    return _storage_instance


def reset_file_storage():
    """Reset the file storage singleton (useful for testing)."""
    global _storage_instance
    _storage_instance = None

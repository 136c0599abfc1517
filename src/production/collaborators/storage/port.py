"""File storage port: metadata lookup for stored objects.

The engine only ever holds reference strings; bytes never pass through it.
"""

from abc import ABC, abstractmethod


class FileStoragePort(ABC):
    @abstractmethod
    def get_file_metadata(self, ref: str) -> dict:
        """Look up a stored object.

        Returns:
            dict with keys: reference, exists (bool), content_type, size,
            url (a fetchable location, or None)
        """
        ...

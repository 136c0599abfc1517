"""Fake file storage: deterministic metadata for testing and development."""

import mimetypes
import zlib

from production.collaborators.storage.port import FileStoragePort


class FakeFileStorage(FileStoragePort):
    """Pretends every reference exists unless told otherwise."""

    def __init__(self):
        self.missing: set[str] = set()
        self.lookups: list[str] = []

    def mark_missing(self, ref: str):
        """Make a reference resolve as absent (useful for testing)."""
        self.missing.add(ref)

    def get_file_metadata(self, ref: str) -> dict:
        self.lookups.append(ref)
        if ref in self.missing:
            return {"reference": ref, "exists": False, "content_type": None, "size": None, "url": None}

        content_type, _ = mimetypes.guess_type(ref)
        return {
            "reference": ref,
            "exists": True,
            "content_type": content_type or "application/octet-stream",
            "size": zlib.crc32(ref.encode()) % 5_000_000 + 1024,
            "url": f"https://fake-storage.example.com/{ref.lstrip('/')}",
        }

    def reset(self):
        self.missing.clear()
        self.lookups.clear()

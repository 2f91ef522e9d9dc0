"""
File fingerprinting for identification of resumable uploads.

A fingerprint is the absolute file path combined with the file size. Two
different files that share both path and size produce the same fingerprint.
"""

import os
from typing import IO, Union


class Fingerprint:
    """
    Generate fingerprints for files to enable resumable uploads.

    The fingerprint is used as the key under which the upload URL is stored,
    so it must stay stable for as long as the file is unchanged.
    """

    def get_fingerprint(self, file_source: Union[str, "os.PathLike[str]", IO]) -> str:
        """
        Generate a fingerprint for a file.

        Args:
            file_source: Either a file path or a named file stream

        Returns:
            str: Fingerprint in format "{absolute_path}-{size}"

        Raises:
            ValueError: If a stream without a ``name`` attribute is given
        """
        if isinstance(file_source, (str, os.PathLike)):
            path = os.fspath(file_source)
            return self._format(path, os.path.getsize(path))

        name = getattr(file_source, "name", None)
        if not isinstance(name, str):
            raise ValueError("Cannot fingerprint a stream without a file name")

        # Measure the stream, then put it back where the caller left it
        original_pos = file_source.tell()
        try:
            file_source.seek(0, os.SEEK_END)
            size = file_source.tell()
        finally:
            file_source.seek(original_pos)
        return self._format(name, size)

    def _format(self, path: str, size: int) -> str:
        return f"{os.path.abspath(path)}-{size}"

"""Binary Payload

Binary content of a repository resource, ready to be attached to a request.
"""

import mimetypes
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..utils.client_utils import RepoLibError


class BinaryPayload:
    """Binary content given either in memory or as a file path."""

    def __init__(self, data: Optional[bytes] = None, path: Optional[str] = None,
                 filename: Optional[str] = None, mime_type: Optional[str] = None):
        """
        Args:
            data: In-memory content
            path: Path of a file holding the content (used when data is None)
            filename: File name reported to the repository (defaults to the path's name)
            mime_type: Content type (guessed from the file name when not given)
        """
        if data is None and path is None:
            raise RepoLibError("Binary payload requires either data or a file path")
        self.data = data
        self.path = path
        self.filename = filename or (Path(path).name if path else None)
        self.mime_type = mime_type or self._guess_mime_type()

    def _guess_mime_type(self) -> str:
        if self.filename:
            guessed, _ = mimetypes.guess_type(self.filename)
            if guessed:
                return guessed
        return 'application/octet-stream'

    def get_body(self) -> bytes:
        if self.data is not None:
            return self.data
        return Path(self.path).read_bytes()

    def attach_to(self, headers: Optional[Dict[str, str]] = None) -> Tuple[Dict[str, str], bytes]:
        """
        Attach the payload to a request.

        Args:
            headers: Request headers to extend

        Returns:
            Tuple of (headers, body)
        """
        headers = dict(headers or {})
        headers['Content-Type'] = self.mime_type
        if self.filename:
            headers['Content-Disposition'] = f'attachment; filename="{self.filename}"'
        return headers, self.get_body()

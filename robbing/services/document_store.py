"""
Robbing Request — Document Store

Opaque document-reference store. Uploaded content is kept against a generated
handle id; the lifecycle engine only ever sees ``DocumentHandle`` values and
checks their presence, never their content.

Usage:
    handle = store.store("sds.pdf", data, content_type="application/pdf")
    store.resolve(handle.handle_id)   # → DocumentHandle
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Optional

from robbing.core.exceptions import NotFoundError, ValidationError
from robbing.models.robbing import DocumentHandle

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class DocumentStore:
    """In-memory document store keyed by handle id."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.max_bytes = max_bytes
        self._handles: dict[str, DocumentHandle] = {}
        self._content: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, name: str, data: bytes, content_type: Optional[str] = None) -> DocumentHandle:
        if not name or not name.strip():
            raise ValidationError("Document name is required", details={"file": "required"})
        if not data:
            raise ValidationError("Document is empty", details={"file": "empty"})
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Document exceeds {self.max_bytes} bytes",
                details={"file": f"larger than {self.max_bytes} bytes"},
            )
        handle = DocumentHandle(
            handle_id=uuid.uuid4().hex,
            name=name.strip(),
            size=len(data),
            content_type=content_type,
        )
        with self._lock:
            self._handles[handle.handle_id] = handle
            self._content[handle.handle_id] = bytes(data)
        logger.info("Stored document %s (%s, %d bytes)", handle.handle_id, handle.name, handle.size)
        return handle

    def resolve(self, handle_id: str) -> DocumentHandle:
        handle = self._handles.get(handle_id)
        if handle is None:
            raise NotFoundError("Document", handle_id)
        return handle

    def read(self, handle_id: str) -> bytes:
        self.resolve(handle_id)
        return self._content[handle_id]

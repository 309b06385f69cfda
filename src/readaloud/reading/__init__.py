"""Reading orchestration package."""

from .book_composer import BookComposer, BookCompositionError
from .orchestrator import DocumentTooLargeError, EmptyDocumentError, ReadingService
from .registry import StreamHandle, StreamRegistry
from .streaming import InvalidPageError, ReadStream, StreamOrchestrator, StreamState

__all__ = [
    "BookComposer",
    "BookCompositionError",
    "DocumentTooLargeError",
    "EmptyDocumentError",
    "InvalidPageError",
    "ReadStream",
    "ReadingService",
    "StreamHandle",
    "StreamOrchestrator",
    "StreamRegistry",
    "StreamState",
]

"""
Document Relay package.

Provides a file-storage sidecar (FastAPI app served by uvicorn) that makes
uploaded documents reachable over HTTP, and a conversion client that pushes
documents through a remote conversion engine using that sidecar.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"

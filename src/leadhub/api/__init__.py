"""FastAPI REST API for LeadHub.

This module provides the REST API layer for leads, webhooks and the
delivery log.

Example:
    ```python
    import uvicorn
    from leadhub.api import create_app

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
    ```

Or run directly:
    ```bash
    uvicorn leadhub.api:app --reload
    ```
"""

from .app import app, create_app
from .router import router

__all__ = [
    "app",
    "create_app",
    "router",
]

"""Start the FastAPI server."""
import os
import sys
from pathlib import Path

import uvicorn

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

if __name__ == "__main__":
    from storefront_assistant.utils.config import settings

    host = os.getenv("API_HOST", settings.api_host)
    port = int(os.getenv("API_PORT", settings.api_port))
    reload = os.getenv("ENVIRONMENT", settings.environment).lower() != "production"
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    print("=" * 60)
    print("Starting Storefront Assistant Server")
    print("=" * 60)
    print(f"Server will be available at: http://{host}:{port}")
    print(f"Environment: {settings.environment}")
    print(f"Reload enabled: {reload}")
    print("Press Ctrl+C to stop the server")
    print("=" * 60)

    uvicorn.run(
        "storefront_assistant.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level
    )

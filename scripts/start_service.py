"""
Service starter — runs the health monitor under uvicorn.
Used by Docker/Railway; PORT overrides the configured API port.
"""
import os
import uvicorn
from shared.config import settings


def main():
    port = int(os.environ.get("PORT", settings.API_PORT))
    print(f"Starting health monitor on port {port}...")
    uvicorn.run(
        "agents.health_monitor.main:app",
        host="0.0.0.0",
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

import uvicorn

from viewstats.config import settings
from viewstats.main import app  # noqa: F401

if __name__ == "__main__":
    uvicorn.run(
        "viewstats.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )

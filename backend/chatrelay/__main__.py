"""
Run the API server: `python -m chatrelay` or the `chatrelay` script.
"""
import uvicorn

from chatrelay.core.config import settings


def main():
    uvicorn.run(
        "chatrelay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

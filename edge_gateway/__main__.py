import uvicorn

from edge_gateway.config import get_settings


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "edge_gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )

# run.py
import uvicorn
from app.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG and settings.ENVIRONMENT != "production",
        log_level="debug" if settings.DEBUG else "info",
        proxy_headers=True,
        access_log=True,
    )

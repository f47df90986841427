import uvicorn
import os


if __name__ == "__main__":
    # 开发模式自动重载（通过环境变量控制）
    is_dev = os.getenv("APP_ENV", "development") == "development"

    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=is_dev,
        log_level=os.getenv("LOG_LEVEL", "info").lower()
    )

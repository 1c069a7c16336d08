import os

import uvicorn

if __name__ == "__main__":
    # 开发环境默认热重载，DEALERFLOW_RELOAD=false 关闭
    is_dev = os.getenv("DEALERFLOW_RELOAD", "true").lower() == "true"

    uvicorn.run(
        "dealerflow.main:app",
        host=os.getenv("DEALERFLOW_HOST", "127.0.0.1"),
        port=int(os.getenv("DEALERFLOW_PORT", "8000")),
        reload=is_dev,
        log_level="info"
    )

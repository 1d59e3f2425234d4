"""
开发启动脚本

等价于 uvicorn bizsite.main:app，端口和热重载取自配置。
"""

import uvicorn

from bizsite.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "bizsite.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )

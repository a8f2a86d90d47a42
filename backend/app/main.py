"""
`uvicorn app.main:app` 的入口；应用实例只在 backend/main.py 里创建一次。
"""

from main import app

__all__ = ["app"]

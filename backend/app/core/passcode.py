import hmac
from typing import Optional

from app.core.config import EditorConfig


def check_editor_passcode(passcode: Optional[str], config: EditorConfig | None = None) -> bool:
    """
    常量时间比较编辑口令；未配置 EDITOR_PASSCODE 时一律拒绝。
    """
    cfg = config or EditorConfig.from_env()
    if not cfg.passcode or not passcode:
        return False
    return hmac.compare_digest(passcode.encode("utf-8"), cfg.passcode.encode("utf-8"))

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    return lowered in {"1", "true", "yes", "y", "on"}


def _env_int(key: str, default: int) -> int:
    raw = (os.environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    raw = (os.environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    """
    运行环境与 Supabase 连接信息。
    """
    env: str  # development / staging / production
    is_staging: bool
    supabase_url: str
    supabase_key: str
    supabase_anon_key: str = ""

    @staticmethod
    def from_env() -> "AppConfig":
        env = (os.environ.get("APP_ENV") or "development").strip().lower()
        is_staging = env == "staging"

        # 中文注释: staging 环境通过平台层替换 SUPABASE_URL，这里只负责读取。
        supabase_url = (os.environ.get("SUPABASE_URL") or "").strip()
        supabase_key = (os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
        # 前端同一把 anon key 可能叫 SUPABASE_ANON_KEY 或 SUPABASE_KEY
        anon_key = (
            os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_KEY") or ""
        ).strip()

        return AppConfig(
            env=env,
            is_staging=is_staging,
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            supabase_anon_key=anon_key,
        )

# Global Config Instance
app_config = AppConfig.from_env()


@dataclass(frozen=True)
class JournalConfig:
    """
    期刊身份信息（邮件抬头、DOI 前缀、解析地址）。
    """

    name: str
    domain: str
    editorial_email: str
    doi_prefix: str

    @property
    def resolver_base(self) -> str:
        return f"https://{self.domain}/doi"

    @staticmethod
    def from_env() -> "JournalConfig":
        name = (os.environ.get("JOURNAL_NAME") or "Marine Notes Journal").strip()
        domain = (
            os.environ.get("JOURNAL_DOMAIN") or "www.marinenotesjournal.com"
        ).strip().strip("/")
        editorial_email = (
            os.environ.get("EDITORIAL_EMAIL") or "editor@marinenotesjournal.com"
        ).strip()
        doi_prefix = (os.environ.get("DOI_PREFIX") or "MNJ").strip().upper()
        return JournalConfig(
            name=name,
            domain=domain,
            editorial_email=editorial_email,
            doi_prefix=doi_prefix,
        )


@dataclass(frozen=True)
class EditorConfig:
    """
    编辑发布通道配置

    中文注释:
    1) EDITOR_PASSCODE 为空时，口令通道视为关闭（只能走编辑角色登录）。
    2) 上传上限可配置，默认 PDF 20MB、投稿附件 25MB。
    """

    passcode: Optional[str]
    pdf_max_bytes: int
    submission_file_max_bytes: int

    @staticmethod
    def from_env() -> "EditorConfig":
        passcode = (os.environ.get("EDITOR_PASSCODE") or "").strip() or None
        return EditorConfig(
            passcode=passcode,
            pdf_max_bytes=_env_int("PDF_MAX_BYTES", 20 * 1024 * 1024),
            submission_file_max_bytes=_env_int(
                "SUBMISSION_FILE_MAX_BYTES", 25 * 1024 * 1024
            ),
        )


@dataclass(frozen=True)
class AIGatewayConfig:
    """
    AI 审稿助手网关配置（OpenAI 兼容 chat/completions 接口）
    """

    api_key: Optional[str]
    url: str
    model: str
    timeout_sec: float

    @staticmethod
    def from_env() -> "AIGatewayConfig":
        api_key = (
            os.environ.get("AI_GATEWAY_API_KEY")
            or os.environ.get("LOVABLE_API_KEY")
            or ""
        ).strip() or None
        url = (
            os.environ.get("AI_GATEWAY_URL")
            or "https://ai.gateway.lovable.dev/v1/chat/completions"
        ).strip()
        model = (
            os.environ.get("AI_REVIEW_MODEL") or "google/gemini-3-flash-preview"
        ).strip()
        return AIGatewayConfig(
            api_key=api_key,
            url=url,
            model=model,
            timeout_sec=_env_float("AI_GATEWAY_TIMEOUT_SEC", 60.0),
        )


@dataclass(frozen=True)
class SMTPConfig:
    """
    SMTP 配置（从环境变量读取）

    中文注释:
    1) 该配置只存在于后端进程内，严禁泄露到前端。
    2) 允许在本地/测试环境缺省（此时邮件发送逻辑会优雅降级为“只记录日志”）。
    """

    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    from_email: str
    use_starttls: bool

    @staticmethod
    def from_env() -> Optional["SMTPConfig"]:
        host = (os.environ.get("SMTP_HOST") or "").strip()
        if not host:
            return None

        user = (os.environ.get("SMTP_USER") or "").strip() or None
        password = (os.environ.get("SMTP_PASSWORD") or "").strip() or None

        from_email = (
            os.environ.get("SMTP_FROM_EMAIL") or user or "no-reply@marinenotesjournal.com"
        ).strip()

        return SMTPConfig(
            host=host,
            port=_env_int("SMTP_PORT", 587),
            user=user,
            password=password,
            from_email=from_email,
            use_starttls=_env_bool("SMTP_USE_STARTTLS", True),
        )


@dataclass(frozen=True)
class ResendConfig:
    """
    Resend API configuration (production email).
    """
    api_key: str
    sender: str

    @staticmethod
    def from_env() -> Optional["ResendConfig"]:
        api_key = (os.environ.get("RESEND_API_KEY") or "").strip()
        if not api_key:
            return None

        sender = (
            os.environ.get("EMAIL_SENDER") or "Marine Notes Journal <onboarding@resend.dev>"
        ).strip()

        return ResendConfig(api_key=api_key, sender=sender)


@dataclass(frozen=True)
class SentryConfig:
    enabled: bool
    dsn: Optional[str]
    environment: str
    traces_sample_rate: float

    @staticmethod
    def from_env() -> "SentryConfig":
        dsn = (os.environ.get("SENTRY_DSN") or "").strip() or None
        environment = (
            os.environ.get("SENTRY_ENVIRONMENT") or os.environ.get("APP_ENV") or "development"
        ).strip()
        return SentryConfig(
            enabled=_env_bool("SENTRY_ENABLED", bool(dsn)),
            dsn=dsn,
            environment=environment,
            traces_sample_rate=_env_float("SENTRY_TRACES_SAMPLE_RATE", 0.0),
        )


DEFAULT_FRONTEND_ORIGIN = "http://localhost:5173"


def frontend_origins() -> list[str]:
    """
    允许跨域的前端 Origins：FRONTEND_ORIGIN 与 FRONTEND_ORIGINS（逗号分隔）合并去重，
    都没配时只放行本地 Vite 开发服务器。
    """
    raw = [os.environ.get("FRONTEND_ORIGIN") or ""]
    raw.extend((os.environ.get("FRONTEND_ORIGINS") or "").split(","))
    origins: list[str] = []
    for item in raw:
        origin = item.strip().rstrip("/")
        if origin and origin not in origins:
            origins.append(origin)
    return origins or [DEFAULT_FRONTEND_ORIGIN]

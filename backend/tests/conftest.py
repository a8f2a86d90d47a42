import pytest
import pytest_asyncio
import os
import jwt
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from typing import AsyncGenerator
from unittest.mock import MagicMock

# Import app from the correct location
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from main import app
from fastapi.testclient import TestClient

import app.core.roles as roles_module
from app.api.v1 import articles as articles_api
from app.api.v1 import editor as editor_api
from app.api.v1 import notifications as notifications_api
from app.api.v1 import publish as publish_api
from app.api.v1 import submissions as submissions_api
from app.core.config import EditorConfig, JournalConfig
from app.core.static_catalog import load_static_articles
from app.services.article_service import ArticleService
from app.services.doi_service import DOIService
from app.services.editorial_service import EditorialService
from app.services.notification_service import NotificationService
from app.services.submission_service import SubmissionService
from utils.fake_supabase import FakeSupabase

# === 全局测试配置 ===
# 中文注释:
# 1. 显式使用 pytest_asyncio.fixture 解决 STRICT 模式下的生成器问题。
# 2. 数据库与 Storage 统一换成内存版 FakeSupabase，通过 dependency_overrides 注入。
# 3. JWT 令牌使用与后端相同的 HS256 secret 签名。

AUTHOR_ID = "11111111-1111-1111-1111-111111111111"
EDITOR_ID = "22222222-2222-2222-2222-222222222222"
OTHER_EDITOR_ID = "33333333-3333-3333-3333-333333333333"
ADMIN_ID = "44444444-4444-4444-4444-444444444444"

TEST_JWT_SECRET = "test-jwt-secret-for-marinenotes"
TEST_PASSCODE = "reef-passcode"
FIXED_NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """
    本地 HS256 校验使用的密钥（生产环境没有默认值）。
    """
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    return TEST_JWT_SECRET


@pytest_asyncio.fixture
async def client() -> AsyncGenerator:
    """
    提供一个模拟的异步测试客户端
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver"
    ) as ac:
        yield ac


def generate_test_token(
    user_id: str = "00000000-0000-0000-0000-000000000000",
    email: str = "test@example.com",
):
    """
    生成用于测试的JWT令牌
    """
    secret = TEST_JWT_SECRET
    now = datetime.now(timezone.utc)

    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": now + timedelta(hours=1),
        "iat": now,
        "role": "authenticated"
    }

    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def user_ids():
    return {
        "author": AUTHOR_ID,
        "editor": EDITOR_ID,
        "other_editor": OTHER_EDITOR_ID,
        "admin": ADMIN_ID,
    }


@pytest.fixture
def author_token():
    return generate_test_token(AUTHOR_ID, "author@example.com")


@pytest.fixture
def editor_token():
    return generate_test_token(EDITOR_ID, "editor@example.com")


@pytest.fixture
def other_editor_token():
    return generate_test_token(OTHER_EDITOR_ID, "second.editor@example.com")


@pytest.fixture
def admin_token():
    return generate_test_token(ADMIN_ID, "admin@example.com")


@pytest.fixture
def expired_token():
    """
    提供过期的认证令牌用于测试
    """
    secret = TEST_JWT_SECRET
    now = datetime.now(timezone.utc)

    payload = {
        "sub": EDITOR_ID,
        "email": "editor@example.com",
        "aud": "authenticated",
        "exp": now - timedelta(hours=1),  # 已过期
        "iat": now - timedelta(hours=2),
        "role": "authenticated"
    }

    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def fake_db(monkeypatch):
    """
    内存数据库：预置编辑/管理员角色，并替换角色查询使用的 supabase_admin。
    """
    db = FakeSupabase()
    db.seed(
        "user_roles",
        [
            {"user_id": EDITOR_ID, "role": "editor"},
            {"user_id": OTHER_EDITOR_ID, "role": "editor"},
            {"user_id": ADMIN_ID, "role": "admin"},
        ],
    )
    monkeypatch.setattr(roles_module, "supabase_admin", db)
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)
    return db


@pytest.fixture
def journal():
    return JournalConfig(
        name="Marine Notes Journal",
        domain="www.marinenotesjournal.com",
        editorial_email="editor@marinenotesjournal.com",
        doi_prefix="MNJ",
    )


@pytest.fixture
def editor_config():
    return EditorConfig(
        passcode=TEST_PASSCODE,
        pdf_max_bytes=1024 * 1024,
        submission_file_max_bytes=1024 * 1024,
    )


@pytest.fixture
def static_articles():
    return load_static_articles()


@pytest.fixture
def article_service(fake_db, journal, editor_config, static_articles):
    doi_service = DOIService(
        journal, client=fake_db, clock=lambda: FIXED_NOW, static_articles=static_articles
    )
    return ArticleService(
        client=fake_db,
        journal=journal,
        editor_config=editor_config,
        doi_service=doi_service,
        static_articles=static_articles,
    )


@pytest.fixture
def editorial_service(fake_db):
    return EditorialService(client=fake_db)


@pytest.fixture
def submission_service(fake_db, editor_config):
    return SubmissionService(client=fake_db, editor_config=editor_config, clock=lambda: FIXED_NOW)


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def api(article_service, editorial_service, submission_service, editor_config, notifier):
    """
    同步 TestClient，所有服务依赖都指向 FakeSupabase。
    """
    overrides = {
        articles_api.get_article_service: lambda: article_service,
        publish_api.get_article_service: lambda: article_service,
        publish_api.get_editor_config: lambda: editor_config,
        editor_api.get_editorial_service: lambda: editorial_service,
        editor_api.get_submission_service: lambda: submission_service,
        submissions_api.get_submission_service: lambda: submission_service,
        submissions_api.get_notification_service: lambda: notifier,
        notifications_api.get_notification_service: lambda: notifier,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

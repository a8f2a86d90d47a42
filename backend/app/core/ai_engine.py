"""
AI 审稿助手（外部 chat/completions 网关）

中文注释:
- 网关是 OpenAI 兼容接口，只做一次请求，不自动重试（429/402 需要原样反馈给编辑）。
- 返回文本原样透传给前端；模型返回空内容时使用固定兜底文案。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.core.config import AIGatewayConfig

logger = logging.getLogger("marinenotes.ai")

FALLBACK_REVIEW = "Unable to generate review."

SYSTEM_PROMPT = """You are the AI Chief Editor for Marine Notes Journal, a peer-reviewed journal covering marine biology, oceanography, marine conservation and coastal environmental science.

Review the submitted manuscript metadata and give the human editors a concise pre-screening assessment. Evaluate each of the following points:

1. **Title Quality**: Is the title clear, specific and informative?
2. **Abstract Quality**: Does the abstract state the aim, methods, key findings and significance?
3. **Keywords Relevance**: Are the keywords relevant and useful for indexing?
4. **Manuscript Type Fit**: Does the content match the selected manuscript type and the journal scope?
5. **Author Information**: Is the author information complete?
6. **Overall Readiness**: Is the submission ready to be sent to peer review?

For each point use a bullet that starts with ✅ (good), ⚠️ (needs attention) or ❌ (problem), followed by a short explanation.

End your review with exactly one of these lines:
RECOMMENDATION: Ready for peer review
RECOMMENDATION: Revisions needed before peer review"""


class AIReviewError(Exception):
    status_code = 500
    message = "AI review service unavailable"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class AIRateLimitError(AIReviewError):
    status_code = 429
    message = "Rate limit exceeded. Please try again later."


class AICreditsExhaustedError(AIReviewError):
    status_code = 402
    message = "AI service credits exhausted."


class AIGatewayError(AIReviewError):
    status_code = 500
    message = "AI review service unavailable"


def build_user_message(
    *,
    title: str,
    abstract: str,
    keywords: str,
    manuscript_type: str,
    authors: str,
    cover_letter: Optional[str] = None,
) -> str:
    cover = (cover_letter or "").strip() or "No cover letter provided."
    return (
        "Please review this manuscript submission:\n\n"
        f"**Title:** {title}\n"
        f"**Manuscript Type:** {manuscript_type}\n"
        f"**Authors:** {authors}\n"
        f"**Keywords:** {keywords}\n\n"
        f"**Abstract:**\n{abstract}\n\n"
        f"**Cover Letter:**\n{cover}"
    )


def _extract_text(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class AIReviewClient:
    def __init__(
        self,
        config: AIGatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or AIGatewayConfig.from_env()
        self._transport = transport

    async def review(
        self,
        *,
        title: str,
        abstract: str,
        keywords: str = "",
        manuscript_type: str = "",
        authors: str = "",
        cover_letter: Optional[str] = None,
    ) -> str:
        if not self.config.api_key:
            logger.error("[AI] gateway api key is not configured")
            raise AIGatewayError()

        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_user_message(
                        title=title,
                        abstract=abstract,
                        keywords=keywords,
                        manuscript_type=manuscript_type,
                        authors=authors,
                        cover_letter=cover_letter,
                    ),
                },
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_sec, transport=self._transport
            ) as client:
                resp = await client.post(self.config.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("[AI] gateway request failed: %s", e)
            raise AIGatewayError() from e

        if resp.status_code == 429:
            logger.warning("[AI] gateway rate limited")
            raise AIRateLimitError()
        if resp.status_code == 402:
            logger.warning("[AI] gateway credits exhausted")
            raise AICreditsExhaustedError()
        if resp.status_code >= 400:
            logger.error("[AI] gateway error %s: %s", resp.status_code, resp.text[:500])
            raise AIGatewayError()

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("[AI] gateway returned invalid json")
            raise AIGatewayError() from e

        text = _extract_text(data)
        return text if text.strip() else FALLBACK_REVIEW

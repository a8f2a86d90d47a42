from fastapi import APIRouter, Depends, HTTPException

from app.core.ai_engine import AIReviewClient, AIReviewError
from app.core.roles import require_editor
from app.models.review import AIReviewRequest, AIReviewResponse

router = APIRouter(tags=["AI Review"])


def get_ai_client() -> AIReviewClient:
    return AIReviewClient()


async def run_ai_review(client: AIReviewClient, req: AIReviewRequest) -> str:
    try:
        return await client.review(
            title=req.title,
            abstract=req.abstract,
            keywords=req.keywords,
            manuscript_type=req.manuscript_type,
            authors=req.authors,
            cover_letter=req.cover_letter,
        )
    except AIReviewError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/ai-review", response_model=AIReviewResponse)
async def ai_review(
    req: AIReviewRequest,
    _profile: dict = Depends(require_editor),
    client: AIReviewClient = Depends(get_ai_client),
):
    """
    AI 预审：只给编辑参考，结果原样返回，不自动落库。
    """
    return {"review": await run_ai_review(client, req)}

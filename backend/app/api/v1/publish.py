import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from app.core.auth_utils import get_optional_user
from app.core.config import EditorConfig
from app.core.passcode import check_editor_passcode
from app.core.roles import EDITOR_ROLES, has_any_role, load_roles
from app.models.article import ArticleValidationError, validate_article
from app.models.publish import PdfUpload, PublishRequest
from app.services.article_service import ArticleService, build_article_pdf_path

router = APIRouter(tags=["Publishing"])

logger = logging.getLogger("marinenotes.publish")


def get_article_service() -> ArticleService:
    return ArticleService()


def get_editor_config() -> EditorConfig:
    return EditorConfig.from_env()


def _authorize(
    body: PublishRequest, user: Optional[dict], config: EditorConfig
) -> str:
    """
    编辑会话（editor/admin 角色）或共享口令，二者满足其一即可。返回审计用的操作者标识。
    """
    if user is not None:
        roles = load_roles(user["id"], user.get("email"))
        if has_any_role({"roles": roles}, EDITOR_ROLES):
            return f"user:{user['id']}"
    if check_editor_passcode(body.passcode, config):
        return "passcode"
    raise HTTPException(status_code=401, detail="Invalid passcode")


def _article_or_400(payload: Optional[dict]):
    try:
        return validate_article(payload)
    except ArticleValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post("/publish-article")
def publish_article(
    body: PublishRequest,
    user: Optional[dict] = Depends(get_optional_user),
    config: EditorConfig = Depends(get_editor_config),
    service: ArticleService = Depends(get_article_service),
):
    """
    编辑发布通道：get-next-doi / upload-pdf / list-articles / publish / update
    """
    actor = _authorize(body, user, config)
    action = (body.action or "").strip()

    if action == "get-next-doi":
        doi, next_num = service.doi_service.next_doi()
        return {"doi": doi, "nextNum": next_num}

    if action == "upload-pdf":
        try:
            upload = PdfUpload.model_validate(body.article or {})
        except ValidationError:
            raise HTTPException(status_code=400, detail="fileName and fileData are required")
        file_name = upload.fileName
        if not (file_name or "").strip():
            if not upload.doi:
                raise HTTPException(status_code=400, detail="fileName and fileData are required")
            file_name = build_article_pdf_path(upload.doi, upload.title)
        url = service.upload_pdf(file_name=file_name, file_data=upload.fileData)
        return {"url": url}

    if action == "list-articles":
        return {"articles": service.list_merged(strict=True)}

    if action == "publish":
        article = _article_or_400(body.article)
        created = service.publish(article)
        logger.info("[Publish] %s published %s", actor, created.get("doi"))
        return {"success": True, "article": created}

    if action == "update":
        article = _article_or_400(body.article)
        updated = service.update(article)
        logger.info("[Publish] %s updated article %s", actor, article.id)
        return {"success": True, "article": updated}

    raise HTTPException(status_code=400, detail="Unknown action")

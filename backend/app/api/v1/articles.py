from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from app.core.doi import normalize_doi_query
from app.services import metrics_service
from app.services.article_service import ArticleService

router = APIRouter(tags=["Articles"])


def get_article_service() -> ArticleService:
    return ArticleService()


@router.get("/articles")
def list_articles(
    q: Optional[str] = Query(None, description="标题/作者/摘要/DOI 关键字"),
    type: Optional[str] = Query(None, description="文章类型"),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    service: ArticleService = Depends(get_article_service),
):
    """
    公开期刊目录（静态目录 + 已发布文章）
    """
    articles = service.search(q=q, article_type=type, year=year)
    return {"articles": articles, "total": len(articles)}


@router.get("/articles/issues")
def list_issues(service: ArticleService = Depends(get_article_service)):
    return {"issues": service.group_by_issue()}


@router.get("/articles/metrics")
def article_metrics(
    q: Optional[str] = Query(None),
    sort: str = Query("citations"),
    service: ArticleService = Depends(get_article_service),
):
    """
    引用与影响力统计：全量汇总 + 过滤排序后的列表
    """
    articles = service.list_merged()
    try:
        ranked = metrics_service.filter_and_sort(articles, q=q, sort=sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"totals": metrics_service.metric_totals(articles), "articles": ranked}


@router.get("/articles/metrics/export")
def export_article_metrics(
    q: Optional[str] = Query(None),
    sort: str = Query("citations"),
    service: ArticleService = Depends(get_article_service),
):
    try:
        ranked = metrics_service.filter_and_sort(service.list_merged(), q=q, sort=sort)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    filename = metrics_service.export_filename()
    return StreamingResponse(
        iter([metrics_service.export_csv(ranked)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/doi-search")
def search_doi(
    q: str = Query(..., min_length=1),
    service: ArticleService = Depends(get_article_service),
):
    """
    DOI 搜索：支持直接粘贴完整解析链接（https://.../doi/MNJ-2026-001）。
    """
    doi = normalize_doi_query(q)
    article = service.find_by_doi(doi) if doi else None
    return {"query": doi, "article": article}


@router.get("/doi/{doi}")
def resolve_doi(doi: str, service: ArticleService = Depends(get_article_service)):
    article = service.find_by_doi(doi)
    if article is None:
        raise HTTPException(status_code=404, detail="DOI not found")
    return article

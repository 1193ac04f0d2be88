# pressdesk/publishing/router.py
"""
Publishing FastAPI Router

Endpoints:
- GET    /api/sites                                   - List registered sites (no secrets)
- POST   /api/sites                                   - Register a site (starts disconnected)
- DELETE /api/sites/{site_id}                         - Delete a site
- PATCH  /api/sites/{site_id}/admin-credentials       - Rotate admin credentials
- POST   /api/sites/{site_id}/verify                  - Admin site verification
- POST   /api/sites/{site_id}/authenticate            - Creator authenticates to a site
- POST   /api/sites/{site_id}/disconnect              - Creator forgets their credential
- GET    /api/sites/{site_id}/categories?user_id=     - Remote categories
- GET    /api/sites/{site_id}/tags?user_id=           - Remote tags
- POST   /api/sites/{site_id}/tags                    - Create a remote tag
- GET    /api/users/{user_id}/sites                   - Sites with the user's connection flags
- GET    /api/users/{user_id}/wp-profile              - Display name and avatar from WordPress
- POST   /api/users/{user_id}/wp-profile/sync         - Push display name / avatar to every site
- POST   /api/articles                                - Create a draft
- GET    /api/articles?user_id=                       - List a user's articles
- GET    /api/articles/{article_id}?user_id=          - Fetch one article
- PATCH  /api/articles/{article_id}                   - Edit a draft
- DELETE /api/articles/{article_id}?user_id=          - Delete an article
- POST   /api/articles/{article_id}/publish           - Publish to WordPress
- GET    /api/articles/{article_id}/publishing/{site_id} - Publishing record
- POST   /api/publishing/reconcile                    - Reconciliation sweep

There is no session layer here: the calling front end passes the user id.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import PublishingError
from .publisher import PublishRequest
from .runtime import PublishingRuntime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Publishing"])


# ============================================================================
# DEPENDENCIES & ERROR MAPPING
# ============================================================================

def get_runtime(request: Request) -> PublishingRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None or not runtime.is_initialized:
        raise HTTPException(status_code=503, detail="Publishing runtime not initialized")
    return runtime


async def publishing_error_handler(request: Request, exc: PublishingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PublishingError, publishing_error_handler)


async def _guarded(action: str, awaitable):
    """Publishing errors pass through; anything else becomes a logged 500"""
    try:
        return await awaitable
    except (PublishingError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"❌ {action} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"{action} failed")


# ============================================================================
# REQUEST MODELS
# ============================================================================

class SiteCreateRequest(BaseModel):
    name: str
    url: str
    api_url: str
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    api_token: Optional[str] = None
    seo_plugin: Optional[str] = None


class AdminCredentialsUpdateRequest(BaseModel):
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    api_token: Optional[str] = None


class VerifySiteRequest(BaseModel):
    admin_username: str
    admin_password: str


class AuthenticateRequest(BaseModel):
    user_id: str
    username: str
    password: str


class DisconnectRequest(BaseModel):
    user_id: str


class ProfileSyncRequest(BaseModel):
    display_name: Optional[str] = None
    profile_picture_url: Optional[str] = None


class TagCreateRequest(BaseModel):
    user_id: str
    name: str


class ArticleCreateRequest(BaseModel):
    user_id: str
    title: str
    content: str = ""
    site_id: Optional[str] = None
    featured_image_url: Optional[str] = None
    image_caption: Optional[str] = None
    categories: List[int] = []
    tags: List[Union[int, str]] = []
    seo: Dict[str, Any] = {}


class ArticleUpdateRequest(BaseModel):
    user_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    site_id: Optional[str] = None
    featured_image_url: Optional[str] = None
    image_caption: Optional[str] = None
    categories: Optional[List[int]] = None
    tags: Optional[List[Union[int, str]]] = None
    seo: Optional[Dict[str, Any]] = None


class PublishArticleRequest(BaseModel):
    user_id: str
    site_id: str
    title: str
    content: str = ""
    categories: List[Union[int, str]] = []
    tags: List[Union[int, str]] = []
    featured_image: Optional[str] = None


# ============================================================================
# SITES (ADMIN)
# ============================================================================

@router.get("/sites")
async def list_sites(runtime: PublishingRuntime = Depends(get_runtime)):
    sites = await _guarded("List sites", runtime.site_verification.list_sites())
    return {"sites": [site.to_public_dict() for site in sites]}


@router.post("/sites")
async def register_site(body: SiteCreateRequest, runtime: PublishingRuntime = Depends(get_runtime)):
    site = await _guarded("Register site", runtime.site_verification.register_site(
        name=body.name,
        url=body.url,
        api_url=body.api_url,
        admin_username=body.admin_username,
        admin_password=body.admin_password,
        api_token=body.api_token,
        seo_plugin=body.seo_plugin,
    ))
    return site.to_public_dict()


@router.delete("/sites/{site_id}")
async def delete_site(site_id: str, runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Delete site", runtime.site_verification.delete_site(site_id))


@router.patch("/sites/{site_id}/admin-credentials")
async def update_admin_credentials(site_id: str, body: AdminCredentialsUpdateRequest,
                                   runtime: PublishingRuntime = Depends(get_runtime)):
    site = await _guarded("Update admin credentials", runtime.site_verification.update_admin_credentials(
        site_id,
        admin_username=body.admin_username,
        admin_password=body.admin_password,
        api_token=body.api_token,
    ))
    return site.to_public_dict()


@router.post("/sites/{site_id}/verify")
async def verify_site(site_id: str, body: VerifySiteRequest,
                      runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Verify site", runtime.site_verification.verify_site(
        site_id, body.admin_username, body.admin_password
    ))


# ============================================================================
# SITES (CREATOR)
# ============================================================================

@router.post("/sites/{site_id}/authenticate")
async def authenticate_to_site(site_id: str, body: AuthenticateRequest,
                               runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Authenticate", runtime.site_auth.authenticate(
        body.user_id, site_id, body.username, body.password
    ))


@router.post("/sites/{site_id}/disconnect")
async def disconnect_from_site(site_id: str, body: DisconnectRequest,
                               runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Disconnect", runtime.site_auth.disconnect(body.user_id, site_id))


@router.get("/users/{user_id}/sites")
async def list_sites_for_user(user_id: str, runtime: PublishingRuntime = Depends(get_runtime)):
    sites = await _guarded("List user sites", runtime.site_auth.list_sites_for_user(user_id))
    return {"sites": sites}


@router.get("/users/{user_id}/wp-profile")
async def get_wp_profile(user_id: str, runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Fetch WordPress profile", runtime.profiles.get_wp_profile(user_id))


@router.post("/users/{user_id}/wp-profile/sync")
async def sync_wp_profile(user_id: str, body: ProfileSyncRequest,
                          runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Profile sync", runtime.profiles.sync_profile(
        user_id, display_name=body.display_name, profile_picture_url=body.profile_picture_url
    ))


@router.get("/sites/{site_id}/categories")
async def list_categories(site_id: str, user_id: str = Query(...),
                          runtime: PublishingRuntime = Depends(get_runtime)):
    categories = await _guarded("List categories", runtime.taxonomy.list_categories(user_id, site_id))
    return {"categories": categories}


@router.get("/sites/{site_id}/tags")
async def list_tags(site_id: str, user_id: str = Query(...),
                    runtime: PublishingRuntime = Depends(get_runtime)):
    tags = await _guarded("List tags", runtime.taxonomy.list_tags(user_id, site_id))
    return {"tags": tags}


@router.post("/sites/{site_id}/tags")
async def create_tag(site_id: str, body: TagCreateRequest,
                     runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Create tag", runtime.taxonomy.create_tag(body.user_id, site_id, body.name))


# ============================================================================
# ARTICLES
# ============================================================================

@router.post("/articles")
async def create_article(body: ArticleCreateRequest, runtime: PublishingRuntime = Depends(get_runtime)):
    article = await _guarded("Create article", runtime.articles.create_draft(
        body.user_id,
        body.title,
        body.content,
        site_id=body.site_id,
        featured_image_url=body.featured_image_url,
        image_caption=body.image_caption,
        categories=list(body.categories),
        tags=list(body.tags),
        seo=dict(body.seo),
    ))
    return article.to_public_dict()


@router.get("/articles")
async def list_articles(user_id: str = Query(...), runtime: PublishingRuntime = Depends(get_runtime)):
    articles = await _guarded("List articles", runtime.articles.list_for_user(user_id))
    return {"articles": [a.to_public_dict() for a in articles]}


@router.get("/articles/{article_id}")
async def get_article(article_id: str, user_id: str = Query(...),
                      runtime: PublishingRuntime = Depends(get_runtime)):
    article = await _guarded("Get article", runtime.articles.get_owned(article_id, user_id))
    return article.to_public_dict()


@router.patch("/articles/{article_id}")
async def update_article(article_id: str, body: ArticleUpdateRequest,
                         runtime: PublishingRuntime = Depends(get_runtime)):
    article = await _guarded("Update article", runtime.articles.update_draft(
        article_id,
        body.user_id,
        title=body.title,
        content=body.content,
        site_id=body.site_id,
        featured_image_url=body.featured_image_url,
        image_caption=body.image_caption,
        categories=body.categories,
        tags=body.tags,
        seo=body.seo,
    ))
    return article.to_public_dict()


@router.delete("/articles/{article_id}")
async def delete_article(article_id: str, user_id: str = Query(...),
                         runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Delete article", runtime.articles.delete(article_id, user_id))


@router.post("/articles/{article_id}/publish")
async def publish_article(article_id: str, body: PublishArticleRequest,
                          runtime: PublishingRuntime = Depends(get_runtime)):
    return await _guarded("Publish", runtime.publisher.publish(PublishRequest(
        article_id=article_id,
        site_id=body.site_id,
        user_id=body.user_id,
        title=body.title,
        content=body.content,
        categories=list(body.categories),
        tags=list(body.tags),
        featured_image=body.featured_image,
    )))


@router.get("/articles/{article_id}/publishing/{site_id}")
async def get_publishing_info(article_id: str, site_id: str,
                              runtime: PublishingRuntime = Depends(get_runtime)):
    record = await _guarded("Publishing info", runtime.articles.get_publishing_info(article_id, site_id))
    return record.to_public_dict()


# ============================================================================
# RECONCILIATION
# ============================================================================

@router.post("/publishing/reconcile")
async def reconcile_published_articles(runtime: PublishingRuntime = Depends(get_runtime)):
    report = await _guarded("Reconciliation", runtime.reconciliation.run())
    return report.to_dict()

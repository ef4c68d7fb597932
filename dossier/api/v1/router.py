from fastapi import APIRouter
from dossier.api.v1.endpoints import auth, share_links, shared, operators, subjects, audit

api_router = APIRouter()

api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(share_links.router, prefix="/share-links", tags=["share-links"])
api_router.include_router(shared.router, prefix="/share", tags=["share"])
api_router.include_router(operators.router, prefix="/operators", tags=["operators"])
api_router.include_router(subjects.router, prefix="/subjects", tags=["subjects"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["audit"])

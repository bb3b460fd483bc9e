"""
API v1 router aggregating all endpoints.
"""
from fastapi import APIRouter

from webcms.api.v1.websites import router as websites_router
from webcms.api.v1.sections import router as sections_router
from webcms.api.v1.section_items import router as section_items_router
from webcms.api.v1.subsections import router as subsections_router

api_router = APIRouter()

api_router.include_router(websites_router)
api_router.include_router(sections_router)
api_router.include_router(section_items_router)
api_router.include_router(subsections_router)

"""
API Routes
"""
from fastapi import APIRouter

from constituent_bot.api.routes.admin import router as admin_router
from constituent_bot.api.routes.chat import router as chat_router
from constituent_bot.api.routes.status import router as status_router
from constituent_bot.api.webhooks.whatsapp_cloud import router as whatsapp_cloud_router

router = APIRouter()

router.include_router(admin_router, prefix="/admin", tags=["admin"])
router.include_router(status_router, prefix="/status", tags=["status"])
router.include_router(chat_router, prefix="/chat", tags=["chat"])
# Canonical webhook endpoint (documented)
router.include_router(whatsapp_cloud_router, prefix="/webhook/whatsapp", tags=["webhooks"])

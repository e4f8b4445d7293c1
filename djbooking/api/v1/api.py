from fastapi import APIRouter
from djbooking.api.v1.routes.auth import router as auth_router
from djbooking.api.v1.routes.djs import router as djs_router
from djbooking.api.v1.routes.payments import router as payments_router
from djbooking.api.v1.routes.bookings import router as bookings_router
from djbooking.api.v1.routes.admin import router as admin_router
from djbooking.api.v1.routes.live import router as live_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)
api_router.include_router(djs_router)
api_router.include_router(payments_router)
api_router.include_router(bookings_router)
api_router.include_router(admin_router)
api_router.include_router(live_router)

from fastapi import APIRouter

from medstock.app.api.endpoints.users import router as users_router
from medstock.app.api.endpoints.medicines import router as medicines_router
from medstock.app.api.endpoints.inbound import router as inbound_router
from medstock.app.api.endpoints.outbound import router as outbound_router

router = APIRouter()
router.include_router(users_router, tags=["users"])
router.include_router(medicines_router, tags=["medicines"])
router.include_router(inbound_router, tags=["inbound_transactions"])
router.include_router(outbound_router, tags=["outbound_transactions"])

from fastapi import APIRouter

from inventory_ledger.api.routes import inventory

api_router = APIRouter()
api_router.include_router(inventory.router)

from fastapi import APIRouter

from leaveflow.api.balances import balances_router, employee_balance_router
from leaveflow.api.leaves import leaves_router

api_router = APIRouter()
api_router.include_router(leaves_router)
api_router.include_router(employee_balance_router)
api_router.include_router(balances_router)

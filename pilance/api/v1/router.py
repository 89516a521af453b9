from fastapi import APIRouter

from pilance.api.v1.contracts import router as contracts_router
from pilance.api.v1.jobs import router as jobs_router
from pilance.api.v1.milestones import router as milestones_router
from pilance.api.v1.payments import router as payments_router
from pilance.api.v1.proposals import router as proposals_router
from pilance.api.v1.reviews import router as reviews_router
from pilance.api.v1.wallet import router as wallet_router

v1_router = APIRouter()

v1_router.include_router(jobs_router)
v1_router.include_router(proposals_router)
v1_router.include_router(contracts_router)
v1_router.include_router(milestones_router)
v1_router.include_router(payments_router)
v1_router.include_router(wallet_router)
v1_router.include_router(reviews_router)

"""Aggregate all v1 sub-routers."""

from fastapi import APIRouter

from careteam.api.v1.audit import router as audit_router
from careteam.api.v1.health import router as health_router
from careteam.api.v1.invites import public_router as public_invites_router
from careteam.api.v1.invites import team_router as team_invites_router
from careteam.api.v1.journey import router as journey_router
from careteam.api.v1.members import router as members_router
from careteam.api.v1.teams import router as teams_router

api_v1_router = APIRouter()

api_v1_router.include_router(health_router, tags=["health"])
api_v1_router.include_router(teams_router, prefix="/teams", tags=["teams"])
api_v1_router.include_router(
    members_router, prefix="/teams/{team_id}/members", tags=["members"]
)
api_v1_router.include_router(
    team_invites_router, prefix="/teams/{team_id}/invites", tags=["invites"]
)
api_v1_router.include_router(
    journey_router, prefix="/teams/{team_id}/journey", tags=["journey"]
)
api_v1_router.include_router(audit_router, prefix="/teams/{team_id}/audit", tags=["audit"])
api_v1_router.include_router(public_invites_router, prefix="/invites", tags=["invites"])

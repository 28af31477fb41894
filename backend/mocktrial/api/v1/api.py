"""
Main API router aggregator
"""
from fastapi import APIRouter

from mocktrial.api.v1.endpoints import (
    account_security,
    admin_calendar,
    admins,
    applications,
    attorneys,
    cases,
    documents,
    events,
    health,
    jurors,
    jury_charge,
    maintenance,
    notifications,
    payments,
    reschedules,
    team,
    tier_upgrades,
    trials,
    verdicts,
    witnesses,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(cases.router, prefix="/cases", tags=["Cases"])
api_router.include_router(applications.router, prefix="/applications", tags=["Applications"])
api_router.include_router(jury_charge.router, prefix="/jury-charge", tags=["Jury Charge"])
api_router.include_router(verdicts.router, prefix="/verdicts", tags=["Verdicts"])
api_router.include_router(trials.router, prefix="/trials", tags=["Trials"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(admin_calendar.router, prefix="/admin-calendar", tags=["Admin Calendar"])
api_router.include_router(reschedules.router, prefix="/reschedules", tags=["Reschedules"])
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"])
api_router.include_router(witnesses.router, prefix="/witnesses", tags=["Witnesses"])
api_router.include_router(team.router, prefix="/war-room-team", tags=["War Room Team"])
api_router.include_router(tier_upgrades.router, prefix="/tier-upgrades", tags=["Tier Upgrades"])
api_router.include_router(admins.router, prefix="/admins", tags=["Admins"])
api_router.include_router(attorneys.router, prefix="/attorneys", tags=["Attorneys"])
api_router.include_router(jurors.router, prefix="/jurors", tags=["Jurors"])
api_router.include_router(account_security.router, prefix="/account-security", tags=["Account Security"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["Maintenance"])

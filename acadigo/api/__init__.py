"""API router package."""

from fastapi import APIRouter

from acadigo.api import assignments, auth, batches, dashboard, logs, ppts, submissions, users

router = APIRouter(prefix="/api")

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(batches.router, prefix="/batches", tags=["batches"])
router.include_router(ppts.router, prefix="/ppts", tags=["ppts"])
router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
router.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(logs.router, prefix="/logs", tags=["logs"])

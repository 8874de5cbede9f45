from fastapi import APIRouter
from drd_portal.api.v1.endpoints import submissions, suggestions, policies, assignments

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": "drd-portal"}


api_router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
api_router.include_router(suggestions.router, tags=["Suggestions"])
api_router.include_router(policies.router, prefix="/policies", tags=["Incentive Policies"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])

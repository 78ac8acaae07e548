"""Session endpoints.

Endpoints:
- GET /auth/me: current account from the session cookie
- POST /auth/logout: clear the session cookie
- GET /auth/admin/ping: reachable only with the ADMIN role
"""

from fastapi import APIRouter, Response

from authgate.api.deps import AdminUser, CurrentUser
from authgate.api.v1.auth import AccountSummaryResponse
from authgate.core.auth import clear_auth_cookie
from authgate.core.responses import DataResponse, MessageResponse
from authgate.services.credentials import AccountSummary

router = APIRouter()


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[AccountSummaryResponse]:
    """Return the signed-in account.

    Returns 401 if there is no valid session or the account was deleted.
    """
    summary = AccountSummary.from_user(user)
    return DataResponse(data=AccountSummaryResponse.from_summary(summary))


@router.post("/logout")
async def logout(response: Response) -> DataResponse[MessageResponse]:
    """Clear the session cookie. No auth required."""
    clear_auth_cookie(response)
    return DataResponse(data=MessageResponse(message="Signed out"))


@router.get("/admin/ping")
async def admin_ping(admin: AdminUser) -> DataResponse[dict]:
    """Confirm the caller holds the ADMIN role (403 otherwise)."""
    return DataResponse(data={"status": "ok", "user_id": str(admin.id)})

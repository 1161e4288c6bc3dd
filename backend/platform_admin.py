"""
Platform Super Admin API Router

This module provides the SmartDash endpoints for monitoring and managing
every business, branch, employee and payment on the SmartStock platform.

Access is restricted to super admin users only.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Request, File, UploadFile, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional
import logging

from database import get_db
from models import AuthAccount, UserRole
from auth import (
    authenticate,
    create_access_token,
    get_account_by_uid,
    get_current_account,
    get_current_user,
    get_password_hash,
    require_super_admin,
    sign_out,
)
from admin_service import AdminService, PaymentNotApprovable, transactions_to_csv
from cloudinary_service import (
    CloudinaryService,
    InvalidImageError,
    UploadError,
    get_cloudinary_service,
    validate_image,
)
from federated_auth import (
    FederatedAuthError,
    GoogleIdentityVerifier,
    IdentityProviderUnavailable,
    get_identity_verifier,
    sign_in_with_google,
)
from listing import ASC, build_listing
from reporting import normalize_plan
from schemas import (
    ActionResponse,
    AppSettings,
    BranchUpdate,
    BusinessUpdate,
    DashboardStats,
    EmployeeUpdate,
    GoogleLoginRequest,
    ListingResponse,
    LoginRequest,
    PasswordChangeRequest,
    PlanUpdate,
    ProfileResponse,
    RejectRequest,
    SessionUser,
    StatusUpdate,
    Token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Platform Admin"])

BUSINESS_SEARCH_FIELDS = ("businessName", "ownerName", "ownerEmail", "district", "sector")
BRANCH_SEARCH_FIELDS = ("name", "businessName", "location")
EMPLOYEE_SEARCH_FIELDS = ("fullName", "email", "phone", "businessName", "branchName")
PAYMENT_SEARCH_FIELDS = ("businessName", "ownerName", "method", "plan", "status")
LOG_SEARCH_FIELDS = ("action", "userName", "userEmail", "businessName", "branchName", "productName")

MIN_PASSWORD_LENGTH = 6


def get_admin_service(db: AsyncSession = Depends(get_db)) -> AdminService:
    return AdminService(db)


def _not_found(kind: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} not found"
    )


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# =============================================================================
# AUTHENTICATION ENDPOINTS
# =============================================================================

@router.post("/auth/login", response_model=Token)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Email/password sign-in.
    The role is not checked here; the route guard signs out anyone who is
    not a super admin on their first dashboard request.
    """
    account = await authenticate(db, data.email, data.password)

    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    account.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(account)

    return {"access_token": create_access_token(account), "token_type": "bearer"}


@router.post("/auth/google", response_model=Token)
async def login_with_google(
    data: GoogleLoginRequest,
    db: AsyncSession = Depends(get_db),
    verifier: GoogleIdentityVerifier = Depends(get_identity_verifier)
):
    """Federated sign-in with a Google ID token"""
    try:
        claims = await verifier.verify(data.id_token)
    except IdentityProviderUnavailable as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except FederatedAuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    account = await sign_in_with_google(db, claims)

    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    return {"access_token": create_access_token(account), "token_type": "bearer"}


@router.post("/auth/logout", response_model=ActionResponse)
async def logout(
    account: AuthAccount = Depends(get_current_account),
    db: AsyncSession = Depends(get_db)
):
    await sign_out(db, account)
    return {"success": True, "message": "Signed out"}


@router.get("/auth/me", response_model=SessionUser)
async def read_session_user(current_user: SessionUser = Depends(get_current_user)):
    return current_user


# =============================================================================
# DASHBOARD
# =============================================================================

@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """Platform-wide counts and the six-month growth series"""
    return await service.fetch_dashboard_stats()


# =============================================================================
# BUSINESSES
# =============================================================================

@router.get("/businesses", response_model=ListingResponse)
async def list_businesses(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    plan: Optional[str] = None,
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    businesses = await service.fetch_all_businesses()
    return build_listing(
        businesses,
        search=search,
        search_fields=BUSINESS_SEARCH_FIELDS,
        filters={
            "status": status_filter,
            "plan": normalize_plan(plan) if plan else None,
        },
        sort=sort,
        direction=direction
    )


@router.get("/businesses/{business_id}")
async def get_business(
    business_id: str,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """Business with its users, branches, products, payments and financial windows"""
    details = await service.get_business_details(business_id)
    if details is None:
        raise _not_found("Business")
    return details


@router.patch("/businesses/{business_id}")
async def update_business(
    business_id: str,
    data: BusinessUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    fields = data.to_fields()
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    updated = await service.update_business(business_id, fields)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="update_business",
        target_type="business",
        target_id=business_id,
        details={"fields": sorted(fields)},
        ip_address=_client_ip(request)
    )
    return updated


@router.patch("/businesses/{business_id}/status")
async def update_business_status(
    business_id: str,
    data: StatusUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    updated = await service.update_business_status(business_id, data.is_active)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="activate_business" if data.is_active else "deactivate_business",
        target_type="business",
        target_id=business_id,
        ip_address=_client_ip(request)
    )
    return updated


@router.patch("/businesses/{business_id}/plan")
async def update_business_plan(
    business_id: str,
    data: PlanUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    updated = await service.update_business_plan(business_id, data.plan)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="update_business_plan",
        target_type="business",
        target_id=business_id,
        details={"plan": data.plan},
        ip_address=_client_ip(request)
    )
    return updated


@router.delete("/businesses/{business_id}", response_model=ActionResponse)
async def delete_business(
    business_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if not await service.delete_business(business_id):
        raise _not_found("Business")

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="delete_business",
        target_type="business",
        target_id=business_id,
        ip_address=_client_ip(request)
    )
    return {"success": True, "message": "Business deleted"}


# =============================================================================
# BRANCHES
# =============================================================================

@router.get("/branches", response_model=ListingResponse)
async def list_branches(
    search: Optional[str] = None,
    business_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    branches = await service.fetch_branches()
    return build_listing(
        branches,
        search=search,
        search_fields=BRANCH_SEARCH_FIELDS,
        filters={"businessId": business_id, "status": status_filter},
        sort=sort,
        direction=direction
    )


@router.get("/branches/{branch_id}")
async def get_branch(
    branch_id: str,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    details = await service.get_branch_details(branch_id)
    if details is None:
        raise _not_found("Branch")
    return details


@router.patch("/branches/{branch_id}")
async def update_branch(
    branch_id: str,
    data: BranchUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    fields = data.to_fields()
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    updated = await service.update_branch(branch_id, fields)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="update_branch",
        target_type="branch",
        target_id=branch_id,
        details={"fields": sorted(fields)},
        ip_address=_client_ip(request)
    )
    return updated


@router.patch("/branches/{branch_id}/status")
async def update_branch_status(
    branch_id: str,
    data: StatusUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    updated = await service.update_branch_status(branch_id, data.is_active)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="activate_branch" if data.is_active else "deactivate_branch",
        target_type="branch",
        target_id=branch_id,
        ip_address=_client_ip(request)
    )
    return updated


@router.delete("/branches/{branch_id}", response_model=ActionResponse)
async def delete_branch(
    branch_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if not await service.delete_branch(branch_id):
        raise _not_found("Branch")

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="delete_branch",
        target_type="branch",
        target_id=branch_id,
        ip_address=_client_ip(request)
    )
    return {"success": True, "message": "Branch deleted"}


# =============================================================================
# EMPLOYEES
# =============================================================================

@router.get("/employees", response_model=ListingResponse)
async def list_employees(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    business_id: Optional[str] = None,
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    employees = await service.fetch_employees()
    return build_listing(
        employees,
        search=search,
        search_fields=EMPLOYEE_SEARCH_FIELDS,
        filters={
            "role": role.value if role else None,
            "status": status_filter,
            "businessId": business_id,
        },
        sort=sort,
        direction=direction
    )


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    user = await service.get_user_details(user_id)
    if user is None:
        raise _not_found("User")
    return user


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    data: EmployeeUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    fields = data.to_fields()
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    updated = await service.update_user(user_id, fields)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="update_user",
        target_type="user",
        target_id=user_id,
        details={"fields": sorted(fields)},
        ip_address=_client_ip(request)
    )
    return updated


@router.patch("/users/{user_id}/status")
async def update_user_status(
    user_id: str,
    data: StatusUpdate,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    updated = await service.update_user_status(user_id, data.is_active)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="activate_user" if data.is_active else "deactivate_user",
        target_type="user",
        target_id=user_id,
        ip_address=_client_ip(request)
    )
    return updated


@router.delete("/users/{user_id}", response_model=ActionResponse)
async def delete_user(
    user_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if user_id == current_admin.uid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    if not await service.delete_user(user_id):
        raise _not_found("User")

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="delete_user",
        target_type="user",
        target_id=user_id,
        ip_address=_client_ip(request)
    )
    return {"success": True, "message": "User deleted"}


# =============================================================================
# PAYMENTS
# =============================================================================

async def _payment_listing(
    service: AdminService,
    search: Optional[str],
    status_filter: Optional[str],
    business_id: Optional[str],
    sort: Optional[str],
    direction: str
) -> dict:
    transactions = await service.fetch_transactions()
    return build_listing(
        transactions,
        search=search,
        search_fields=PAYMENT_SEARCH_FIELDS,
        filters={"status": status_filter, "businessId": business_id},
        sort=sort,
        direction=direction
    )


@router.get("/transactions", response_model=ListingResponse)
async def list_transactions(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    business_id: Optional[str] = None,
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """Payments, newest first unless another sort is requested"""
    return await _payment_listing(service, search, status_filter, business_id, sort, direction)


@router.get("/transactions/export")
async def export_transactions(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    business_id: Optional[str] = None,
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """Download the filtered payment list as CSV"""
    listing = await _payment_listing(service, search, status_filter, business_id, sort, direction)
    filename = f"transactions_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"

    return Response(
        content=transactions_to_csv(listing["items"]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/transactions/{payment_id}")
async def get_transaction(
    payment_id: str,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    transaction = await service.get_transaction(payment_id)
    if transaction is None:
        raise _not_found("Transaction")
    return transaction


@router.post("/transactions/{payment_id}/approve")
async def approve_transaction(
    payment_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """
    Approve a payment and activate the paid plan on its business.
    The payment write is not rolled back if the business write fails.
    """
    try:
        result = await service.approve_transaction(payment_id)
    except PaymentNotApprovable as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if result is None:
        raise _not_found("Transaction")
    updated, plan = result

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="approve_payment",
        target_type="payment",
        target_id=payment_id,
        details={"businessId": updated.get("businessId"), "plan": plan},
        ip_address=_client_ip(request)
    )
    return updated


@router.post("/transactions/{payment_id}/reject")
async def reject_transaction(
    payment_id: str,
    data: RejectRequest,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    reason = data.reason.strip()
    if not reason:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A rejection reason is required"
        )

    updated = await service.reject_transaction(payment_id, reason)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="reject_payment",
        target_type="payment",
        target_id=payment_id,
        details={"reason": reason},
        ip_address=_client_ip(request)
    )
    return updated


@router.delete("/transactions/{payment_id}", response_model=ActionResponse)
async def delete_transaction(
    payment_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if not await service.delete_transaction(payment_id):
        raise _not_found("Transaction")

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="delete_payment",
        target_type="payment",
        target_id=payment_id,
        ip_address=_client_ip(request)
    )
    return {"success": True, "message": "Transaction deleted"}


# =============================================================================
# LOGS
# =============================================================================

@router.get("/logs", response_model=ListingResponse)
async def list_logs(
    search: Optional[str] = None,
    business_id: Optional[str] = None,
    transaction_type: Optional[str] = None,
    sort: Optional[str] = None,
    direction: str = Query(ASC, pattern="^(asc|desc)$"),
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    logs = await service.fetch_logs()
    return build_listing(
        logs,
        search=search,
        search_fields=LOG_SEARCH_FIELDS,
        filters={"businessId": business_id, "transactionType": transaction_type},
        sort=sort,
        direction=direction
    )


@router.get("/logs/{log_id}")
async def get_log(
    log_id: str,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    log = await service.get_log(log_id)
    if log is None:
        raise _not_found("Log")
    return log


@router.delete("/logs/{log_id}", response_model=ActionResponse)
async def delete_log(
    log_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if not await service.delete_log(log_id):
        raise _not_found("Log")

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="delete_log",
        target_type="log",
        target_id=log_id,
        ip_address=_client_ip(request)
    )
    return {"success": True, "message": "Log deleted"}


@router.get("/activity-logs", response_model=ListingResponse)
async def list_activity_logs(
    admin_uid: Optional[str] = None,
    action: Optional[str] = None,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """Audit trail of actions taken from this dashboard"""
    logs = await service.fetch_activity_logs()
    return build_listing(logs, filters={"adminUid": admin_uid, "action": action})


# =============================================================================
# SETTINGS
# =============================================================================

@router.get("/settings", response_model=AppSettings)
async def get_settings(
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    return await service.get_app_settings()


@router.put("/settings", response_model=AppSettings)
async def save_settings(
    data: AppSettings,
    request: Request,
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    saved = await service.save_app_settings(data)

    await service.log_admin_activity(
        admin_uid=current_admin.uid,
        action="update_settings",
        target_type="settings",
        details=data.model_dump(),
        ip_address=_client_ip(request)
    )
    return saved


# =============================================================================
# PROFILE
# =============================================================================

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    service: AdminService = Depends(get_admin_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    summary = await service.fetch_dashboard_stats()
    return {"user": current_admin, "summary": summary}


@router.post("/profile/image", response_model=SessionUser)
async def upload_profile_image(
    file: UploadFile = File(..., description="Profile image (JPG, PNG, GIF, WebP, max 5MB)"),
    service: AdminService = Depends(get_admin_service),
    cloudinary: CloudinaryService = Depends(get_cloudinary_service),
    current_admin: SessionUser = Depends(require_super_admin)
):
    """
    Upload a new profile image.

    The file is validated, pushed to Cloudinary, and the hosted URL is
    written to the admin's user document.
    """
    content = await file.read()

    try:
        validate_image(file.filename, file.content_type, len(content))
    except InvalidImageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        image_url = await cloudinary.upload_image(content, file.filename, file.content_type)
    except UploadError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    await service.update_profile_image(current_admin.uid, image_url)

    return SessionUser(**{**current_admin.model_dump(), "profileImage": image_url})


@router.post("/profile/password", response_model=ActionResponse)
async def change_password(
    data: PasswordChangeRequest,
    db: AsyncSession = Depends(get_db),
    current_admin: SessionUser = Depends(require_super_admin)
):
    if data.new_password != data.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Passwords do not match"
        )

    if len(data.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    account = await get_account_by_uid(db, current_admin.uid)
    account.hashed_password = get_password_hash(data.new_password)
    await db.commit()

    logger.info(f"Password changed for {account.email}")
    return {"success": True, "message": "Password updated"}

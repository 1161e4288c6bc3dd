"""
Admin data-access layer.

Issues CRUD calls against the named collections and performs the
client-side joins the dashboard pages need (owner names for businesses,
business names for branches and employees, and so on). References are not
enforced by the store, so a dangling one resolves to a display fallback
("Unknown" / "N/A") instead of an error.
"""

import csv
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from document_store import (
    DocumentStore,
    COLLECTION_BUSINESSES,
    COLLECTION_BRANCHES,
    COLLECTION_USERS,
    COLLECTION_PAYMENTS,
    COLLECTION_TRANSACTIONS,
    COLLECTION_PRODUCTS,
    COLLECTION_CONFIG,
    COLLECTION_ADMIN_ACTIVITY_LOGS,
    APP_SETTINGS_DOC_ID,
)
from models import PaymentStatus
from reporting import (
    calculate_remaining_days,
    compute_dashboard_stats,
    compute_financial_periods,
    is_expiring_soon,
    parse_timestamp,
    resolve_plan,
)
from schemas import AppSettings

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
DEFAULT_APPROVAL_PLAN = "month"
BUSINESS_PRODUCTS_PREVIEW = 50


class PaymentNotApprovable(ValueError):
    """Raised when a payment carries no business reference"""


def person_name(user: Optional[Dict[str, Any]]) -> str:
    """`fullName`, else 'firstName lastName', else Unknown"""
    if not user:
        return UNKNOWN
    if user.get("fullName"):
        return user["fullName"]
    parts = [user.get("firstName"), user.get("lastName")]
    name = " ".join(p for p in parts if p)
    return name or UNKNOWN


def branch_name(branch: Optional[Dict[str, Any]], fallback: str = "Unnamed Branch") -> str:
    if not branch:
        return fallback
    return branch.get("branchName") or branch.get("name") or fallback


def branch_location(branch: Dict[str, Any]) -> str:
    parts = [branch.get("sector"), branch.get("district")]
    parts = [p for p in parts if p]
    if parts:
        return ", ".join(parts)
    return branch.get("location") or NOT_AVAILABLE


def log_severity(log: Dict[str, Any]) -> str:
    action = str(log.get("action") or log.get("actionDetails") or "").lower()
    if "failed" in action:
        return "error"
    if "system" in action:
        return "system"
    return "info"


def log_moment(log: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(log.get("createdAt") or log.get("timestamp"))


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


class AdminService:
    """One instance per request; wraps a DocumentStore bound to the request's session"""

    def __init__(self, db: AsyncSession, tz_name: Optional[str] = None):
        self.store = DocumentStore(db)
        self.tz_name = tz_name or settings.TIMEZONE

    async def _safe_get(self, collection: str, doc_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Secondary lookup for a join; failures are logged and treated as missing"""
        if not doc_id:
            return None
        try:
            return await self.store.get(collection, doc_id)
        except Exception as e:
            logger.error(f"Error resolving {collection}/{doc_id}: {e}", exc_info=True)
            return None

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    async def fetch_dashboard_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        businesses = await self.store.list(COLLECTION_BUSINESSES)
        users = await self.store.list(COLLECTION_USERS)
        payments = await self.store.list(COLLECTION_PAYMENTS)
        return compute_dashboard_stats(businesses, users, payments, now=now, tz_name=self.tz_name)

    # =========================================================================
    # BUSINESSES
    # =========================================================================

    async def _enrich_business(self, business: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        owner = await self._safe_get(COLLECTION_USERS, business.get("ownerId"))
        owner_name = person_name(owner) if owner else UNKNOWN
        owner_email = (owner or {}).get("email") or NOT_AVAILABLE

        subscription = business.get("subscription") or {}
        remaining = calculate_remaining_days(subscription.get("endDate"), now=now)

        return {
            **business,
            "ownerName": owner_name,
            "ownerEmail": owner_email,
            "plan": resolve_plan(business),
            "status": "Active" if business.get("isActive") else "Inactive",
            "remainingDays": remaining,
            "expiringSoon": is_expiring_soon(remaining),
        }

    async def fetch_all_businesses(self) -> List[Dict[str, Any]]:
        businesses = await self.store.list(COLLECTION_BUSINESSES)
        return [await self._enrich_business(b) for b in businesses]

    async def get_business_details(self, business_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Business plus its users, branches, products, payments and financial windows"""
        business = await self.store.get(COLLECTION_BUSINESSES, business_id)
        if business is None:
            return None

        scope = {"businessId": business_id}
        users = await self.store.query(COLLECTION_USERS, where=scope)
        branches = await self.store.query(COLLECTION_BRANCHES, where=scope)
        products = await self.store.query(COLLECTION_PRODUCTS, where=scope)
        payments = await self.store.query(COLLECTION_PAYMENTS, where=scope)

        return {
            "business": await self._enrich_business(business, now=now),
            "users": users,
            "branches": branches,
            "products": products[:BUSINESS_PRODUCTS_PREVIEW],
            "productCount": len(products),
            "payments": payments,
            "financials": compute_financial_periods(products, now=now, tz_name=self.tz_name),
        }

    async def update_business(self, business_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self.store.update(COLLECTION_BUSINESSES, business_id, fields)

    async def update_business_status(self, business_id: str, is_active: bool) -> Dict[str, Any]:
        return await self.store.update(COLLECTION_BUSINESSES, business_id, {"isActive": is_active})

    async def update_business_plan(self, business_id: str, plan: str) -> Dict[str, Any]:
        # Stored as given; normalization happens when read
        return await self.store.update(COLLECTION_BUSINESSES, business_id, {
            "subscription.plan": plan,
            "subscription.status": "active",
        })

    async def delete_business(self, business_id: str) -> bool:
        return await self.store.delete(COLLECTION_BUSINESSES, business_id)

    # =========================================================================
    # BRANCHES
    # =========================================================================

    async def _enrich_branch(self, branch: Dict[str, Any]) -> Dict[str, Any]:
        business = await self._safe_get(COLLECTION_BUSINESSES, branch.get("businessId"))
        return {
            **branch,
            "name": branch_name(branch),
            "location": branch_location(branch),
            "status": "Active" if branch.get("isActive") is not False else "Inactive",
            "businessName": (business or {}).get("businessName") or UNKNOWN,
        }

    async def fetch_branches(self) -> List[Dict[str, Any]]:
        branches = await self.store.list(COLLECTION_BRANCHES)
        return [await self._enrich_branch(b) for b in branches]

    async def get_branch_details(self, branch_id: str) -> Optional[Dict[str, Any]]:
        """Branch, its business, and the users assigned to it"""
        branch = await self.store.get(COLLECTION_BRANCHES, branch_id)
        if branch is None:
            return None

        business = await self._safe_get(COLLECTION_BUSINESSES, branch.get("businessId"))
        assigned_users = await self.store.query(
            COLLECTION_USERS,
            where={"businessId": branch.get("businessId"), "branch": branch_id}
        )
        return {
            "branch": await self._enrich_branch(branch),
            "business": business,
            "assignedUsers": assigned_users,
        }

    async def update_branch(self, branch_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {**fields, "updatedAt": utc_now_iso()}
        return await self.store.update(COLLECTION_BRANCHES, branch_id, fields)

    async def update_branch_status(self, branch_id: str, is_active: bool) -> Dict[str, Any]:
        return await self.update_branch(branch_id, {"isActive": is_active})

    async def delete_branch(self, branch_id: str) -> bool:
        return await self.store.delete(COLLECTION_BRANCHES, branch_id)

    # =========================================================================
    # EMPLOYEES
    # =========================================================================

    async def fetch_employees(self) -> List[Dict[str, Any]]:
        """Users attached to a business, with business and branch names resolved"""
        users = await self.store.list(COLLECTION_USERS)

        # One pass over branches instead of a lookup per user
        branch_names = {
            b["id"]: branch_name(b, fallback="Unknown Branch")
            for b in await self.store.list(COLLECTION_BRANCHES)
        }
        business_names: Dict[str, str] = {}

        employees = []
        for user in users:
            business_id = user.get("businessId")
            if not business_id:
                continue

            if business_id not in business_names:
                business = await self._safe_get(COLLECTION_BUSINESSES, business_id)
                business_names[business_id] = (business or {}).get("businessName") or NOT_AVAILABLE

            branch_id = user.get("branch") or None
            employees.append({
                **user,
                "fullName": person_name(user),
                "status": "Active" if user.get("isActive") else "Inactive",
                "businessName": business_names[business_id],
                "branch": branch_id,
                "branchName": branch_names.get(branch_id, NOT_AVAILABLE) if branch_id else NOT_AVAILABLE,
            })
        return employees

    async def get_user_details(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = await self.store.get(COLLECTION_USERS, user_id)
        if user is None:
            return None

        business = await self._safe_get(COLLECTION_BUSINESSES, user.get("businessId"))
        branch = await self._safe_get(COLLECTION_BRANCHES, user.get("branch"))
        return {
            **user,
            "fullName": person_name(user),
            "businessName": (business or {}).get("businessName") or NOT_AVAILABLE,
            "branchName": branch_name(branch, fallback=NOT_AVAILABLE) if branch else NOT_AVAILABLE,
        }

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self.store.update(COLLECTION_USERS, user_id, fields)

    async def update_user_status(self, user_id: str, is_active: bool) -> Dict[str, Any]:
        return await self.store.update(COLLECTION_USERS, user_id, {"isActive": is_active})

    async def delete_user(self, user_id: str) -> bool:
        return await self.store.delete(COLLECTION_USERS, user_id)

    async def update_profile_image(self, uid: str, image_url: str) -> None:
        await self.store.update(COLLECTION_USERS, uid, {"profileImage": image_url})

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def fetch_transactions(self) -> List[Dict[str, Any]]:
        """Payments newest first, with business and owner names. Read failures yield []."""
        try:
            payments = await self.store.query(COLLECTION_PAYMENTS, order_by="createdAt", descending=True)

            transactions = []
            for payment in payments:
                business_name = payment.get("businessName") or UNKNOWN
                if payment.get("businessId") and business_name == UNKNOWN:
                    business = await self._safe_get(COLLECTION_BUSINESSES, payment["businessId"])
                    business_name = (business or {}).get("businessName") or UNKNOWN

                payer = await self._safe_get(COLLECTION_USERS, payment.get("userId"))
                transactions.append({
                    **payment,
                    "businessName": business_name,
                    "ownerName": person_name(payer),
                    "plan": resolve_plan(payment),
                    "status": payment.get("status") or PaymentStatus.PENDING.value,
                })
            return transactions
        except Exception as e:
            logger.error(f"Error fetching transactions: {e}", exc_info=True)
            return []

    async def get_transaction(self, payment_id: str) -> Optional[Dict[str, Any]]:
        """
        Payment detail. The owner is resolved through the business's ownerId,
        falling back to the paying user.
        """
        payment = await self.store.get(COLLECTION_PAYMENTS, payment_id)
        if payment is None:
            return None

        business_name = payment.get("businessName") or UNKNOWN
        owner_name = UNKNOWN

        business = await self._safe_get(COLLECTION_BUSINESSES, payment.get("businessId"))
        if business:
            business_name = business.get("businessName") or business_name
            owner = await self._safe_get(COLLECTION_USERS, business.get("ownerId"))
            if owner:
                owner_name = person_name(owner)

        if owner_name == UNKNOWN and payment.get("userId"):
            payer = await self._safe_get(COLLECTION_USERS, payment["userId"])
            if payer:
                owner_name = person_name(payer)

        return {
            **payment,
            "businessName": business_name,
            "ownerName": owner_name,
            "plan": resolve_plan(payment),
        }

    async def approve_transaction(self, payment_id: str) -> Optional[Tuple[Dict[str, Any], str]]:
        """
        Approve a payment, then move its business onto the paid plan.

        Returns the updated payment and the plan applied to the business.
        Two independent writes: if the business update fails the payment
        stays approved.
        """
        payment = await self.store.get(COLLECTION_PAYMENTS, payment_id)
        if payment is None:
            return None
        if not payment.get("businessId"):
            raise PaymentNotApprovable("Cannot approve: Missing Business ID in transaction")

        plan = payment.get("plan") or DEFAULT_APPROVAL_PLAN

        updated = await self.store.update(COLLECTION_PAYMENTS, payment_id, {
            "status": PaymentStatus.APPROVED.value,
            "approvedAt": utc_now_iso(),
        })
        await self.update_business_plan(payment["businessId"], plan)

        logger.info(f"Approved payment {payment_id} for business {payment['businessId']} ({plan})")
        return updated, plan

    async def reject_transaction(self, payment_id: str, reason: str) -> Dict[str, Any]:
        return await self.store.update(COLLECTION_PAYMENTS, payment_id, {
            "status": PaymentStatus.REJECTED.value,
            "rejectionReason": reason,
        })

    async def delete_transaction(self, payment_id: str) -> bool:
        return await self.store.delete(COLLECTION_PAYMENTS, payment_id)

    # =========================================================================
    # LOGS
    # =========================================================================

    async def fetch_logs(self) -> List[Dict[str, Any]]:
        logs = await self.store.list(COLLECTION_TRANSACTIONS)
        rows = [{**log, "severity": log_severity(log)} for log in logs]
        # Newest first; entries without a readable time go last
        dated = [(log_moment(r), r) for r in rows if log_moment(r) is not None]
        undated = [r for r in rows if log_moment(r) is None]
        dated.sort(key=lambda pair: pair[0].timestamp(), reverse=True)
        return [r for _, r in dated] + undated

    async def get_log(self, log_id: str) -> Optional[Dict[str, Any]]:
        log = await self.store.get(COLLECTION_TRANSACTIONS, log_id)
        if log is None:
            return None
        return {**log, "severity": log_severity(log)}

    async def delete_log(self, log_id: str) -> bool:
        return await self.store.delete(COLLECTION_TRANSACTIONS, log_id)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    async def get_app_settings(self) -> AppSettings:
        stored = await self.store.get(COLLECTION_CONFIG, APP_SETTINGS_DOC_ID)
        if not stored:
            return AppSettings()
        stored.pop("id", None)
        return AppSettings(**stored)

    async def save_app_settings(self, app_settings: AppSettings) -> AppSettings:
        """Overwrite the settings document wholesale"""
        await self.store.set(COLLECTION_CONFIG, APP_SETTINGS_DOC_ID, app_settings.model_dump())
        return app_settings

    # =========================================================================
    # AUDIT TRAIL
    # =========================================================================

    async def log_admin_activity(
        self,
        admin_uid: str,
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> str:
        """Log admin activity for audit purposes"""
        return await self.store.add(COLLECTION_ADMIN_ACTIVITY_LOGS, {
            "adminUid": admin_uid,
            "action": action,
            "targetType": target_type,
            "targetId": target_id,
            "details": details or {},
            "ipAddress": ip_address,
            "createdAt": utc_now_iso(),
        })

    async def fetch_activity_logs(self) -> List[Dict[str, Any]]:
        return await self.store.query(COLLECTION_ADMIN_ACTIVITY_LOGS, order_by="createdAt", descending=True)


# =============================================================================
# EXPORTS
# =============================================================================

TRANSACTION_CSV_COLUMNS = [
    ("Payment ID", "id"),
    ("Business", "businessName"),
    ("Owner", "ownerName"),
    ("Amount", "amount"),
    ("Currency", "currency"),
    ("Method", "method"),
    ("Plan", "plan"),
    ("Status", "status"),
    ("Created At", "createdAt"),
    ("Rejection Reason", "rejectionReason"),
]


def transactions_to_csv(transactions: List[Dict[str, Any]]) -> str:
    """Render payment rows as CSV text"""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([header for header, _ in TRANSACTION_CSV_COLUMNS])
    for txn in transactions:
        writer.writerow([
            "" if txn.get(field) is None else txn.get(field)
            for _, field in TRANSACTION_CSV_COLUMNS
        ])
    return buffer.getvalue()

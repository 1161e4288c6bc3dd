from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from models import UserRole


# Auth Schemas
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class GoogleLoginRequest(BaseModel):
    id_token: str


class Token(BaseModel):
    access_token: str
    token_type: str


class SessionUser(BaseModel):
    """Signed-in identity merged with the `users/{uid}` profile document"""
    uid: str
    email: Optional[str] = None
    role: str = UserRole.USER.value

    class Config:
        extra = "allow"


class PasswordChangeRequest(BaseModel):
    new_password: str
    confirm_password: str


# Document edit schemas. Aliases are the document field names.
class DocumentPatch(BaseModel):
    class Config:
        populate_by_name = True

    def to_fields(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by document field name"""
        return self.model_dump(by_alias=True, exclude_unset=True)


class BusinessUpdate(DocumentPatch):
    business_name: Optional[str] = Field(None, alias="businessName")
    district: Optional[str] = None
    sector: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class BranchUpdate(DocumentPatch):
    branch_name: Optional[str] = Field(None, alias="branchName")
    district: Optional[str] = None
    sector: Optional[str] = None
    cell: Optional[str] = None
    village: Optional[str] = None


class EmployeeUpdate(DocumentPatch):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    full_name: Optional[str] = Field(None, alias="fullName")
    phone: Optional[str] = None
    gender: Optional[str] = None
    role: Optional[UserRole] = None
    branch: Optional[str] = None
    district: Optional[str] = None
    sector: Optional[str] = None
    cell: Optional[str] = None
    village: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        fields = super().to_fields()
        if isinstance(fields.get("role"), UserRole):
            fields["role"] = fields["role"].value
        return fields


class StatusUpdate(BaseModel):
    is_active: bool = Field(..., alias="isActive")

    class Config:
        populate_by_name = True


class PlanUpdate(BaseModel):
    plan: str = Field(..., min_length=1)


class RejectRequest(BaseModel):
    reason: str


class ActionResponse(BaseModel):
    success: bool
    message: str


# Settings document (config/appSettings)
class PricingSettings(BaseModel):
    month: float = 0
    year: float = 0
    forever: float = 0


class LimitSettings(BaseModel):
    maxProducts: int = 50
    maxUsers: int = 2
    maxBranches: int = 1


class AppSettings(BaseModel):
    pricing: PricingSettings = PricingSettings()
    enableFreePlan: bool = True
    limits: LimitSettings = LimitSettings()
    maintenanceMode: bool = False


# Dashboard Schemas
class BusinessStats(BaseModel):
    total: int
    active: int
    inactive: int
    byPlan: Dict[str, int]


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    admin: int
    staff: int


class PaymentStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    revenue: float


class GrowthPoint(BaseModel):
    name: str  # YYYY-MM
    value: float


class DashboardStats(BaseModel):
    businessStats: BusinessStats
    userStats: UserStats
    paymentStats: PaymentStats
    businessGrowthData: List[GrowthPoint]
    paymentsGrowthData: List[GrowthPoint]


class ListingResponse(BaseModel):
    """A filtered, sorted view over a fully loaded collection"""
    count: int
    items: List[Dict[str, Any]]


class ProfileResponse(BaseModel):
    user: SessionUser
    summary: Optional[DashboardStats] = None

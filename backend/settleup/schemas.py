"""Pydantic schemas for request/response and the settlement core's records."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr

EntityType = Literal["user", "group"]
SplitType = Literal["equal", "ratio", "custom"]
EventStatus = Literal["active", "payment", "settled", "closed"]
SettlementStatus = Literal["pending", "initiated", "completed", "failed", "terminated"]
FxRateMode = Literal["predefined", "eod"]


# ----- User -----
class UserBase(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class UserCreate(UserBase):
    password: str


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(UserBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MemberInfo(BaseModel):
    id: int
    name: Optional[str] = None
    email: EmailStr


# ----- Entities (a user or a group) -----
class EntityRef(BaseModel):
    entity_type: EntityType
    entity_id: int

    class Config:
        frozen = True


# ----- Event -----
class EventRecord(BaseModel):
    id: int
    name: str
    currency: str
    settlement_currency: Optional[str] = None
    fx_rate_mode: FxRateMode = "eod"
    predefined_fx_rates: Optional[dict[str, float]] = None
    status: EventStatus = "active"
    created_by: int
    admin_ids: list[int] = []
    participant_ids: list[int] = []

    def is_admin(self, user_id: int) -> bool:
        return user_id == self.created_by or user_id in self.admin_ids


class EventCreate(BaseModel):
    name: str
    description: Optional[str] = None
    currency: str
    settlement_currency: Optional[str] = None
    fx_rate_mode: FxRateMode = "eod"
    predefined_fx_rates: Optional[dict[str, float]] = None


class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = None
    settlement_currency: Optional[str] = None
    fx_rate_mode: Optional[FxRateMode] = None
    predefined_fx_rates: Optional[dict[str, float]] = None
    status: Optional[EventStatus] = None


class EventAddParticipant(BaseModel):
    email: EmailStr
    admin: bool = False


class EventResponse(EventRecord):
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    participants: list[MemberInfo] = []


# ----- Group -----
class GroupRecord(BaseModel):
    id: int
    event_id: int
    name: str
    member_ids: list[int]
    representative_id: int
    payer_id: int


class GroupCreate(BaseModel):
    event_id: int
    name: str
    description: Optional[str] = None
    member_ids: list[int]
    representative_id: Optional[int] = None
    payer_id: Optional[int] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    member_ids: Optional[list[int]] = None
    representative_id: Optional[int] = None
    payer_id: Optional[int] = None


class GroupResponse(GroupRecord):
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    members: list[MemberInfo] = []


# ----- Expense -----
class SplitRecord(BaseModel):
    entity_type: EntityType = "user"
    entity_id: int
    amount: float
    ratio: Optional[float] = None

    class Config:
        from_attributes = True


class ExpenseRecord(BaseModel):
    id: int
    event_id: int
    title: str
    amount: float
    currency: str
    payer_id: int
    is_private: bool = False
    split_type: SplitType = "equal"
    splits: list[SplitRecord] = []
    paid_on_behalf_of: list[EntityRef] = []


class SplitInput(BaseModel):
    entity_type: EntityType = "user"
    entity_id: int
    amount: Optional[float] = None
    ratio: Optional[float] = None


class ExpenseCreate(BaseModel):
    event_id: int
    title: str
    description: Optional[str] = None
    amount: float
    currency: Optional[str] = None
    payer_id: Optional[int] = None
    is_private: bool = False
    split_type: SplitType = "equal"
    participant_ids: Optional[list[int]] = None
    splits: Optional[list[SplitInput]] = None
    paid_on_behalf_of: Optional[list[EntityRef]] = None


class ExpenseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    is_private: Optional[bool] = None
    split_type: Optional[SplitType] = None
    participant_ids: Optional[list[int]] = None
    splits: Optional[list[SplitInput]] = None
    paid_on_behalf_of: Optional[list[EntityRef]] = None


class ExpenseResponse(ExpenseRecord):
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ----- Settlement -----
class Balance(BaseModel):
    entity_id: int
    entity_type: EntityType
    amount: float


class SettlementRecord(BaseModel):
    id: Optional[int] = None
    event_id: int
    from_entity_id: int
    from_entity_type: EntityType
    to_entity_id: int
    to_entity_type: EntityType
    from_user_id: int
    to_user_id: int
    amount: float
    currency: str
    settlement_amount: Optional[float] = None
    settlement_currency: Optional[str] = None
    fx_rate: Optional[float] = None
    status: SettlementStatus = "pending"
    payment_provider: Optional[str] = None
    rejection_reason: Optional[str] = None
    failure_reason: Optional[str] = None
    terminated_reason: Optional[str] = None
    retry_count: int = 0
    created_at: Optional[datetime] = None
    initiated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SettlementPlan(BaseModel):
    event_id: int
    settlements: list[SettlementRecord]
    total_transactions: int
    total_amount: float


class SettlementReject(BaseModel):
    reason: str
    failed: bool = False


class SettlementFail(BaseModel):
    reason: str


class PendingTotal(BaseModel):
    event_id: int
    pending_total: float


# ----- FX -----
class FxRate(BaseModel):
    from_currency: str
    to_currency: str
    rate: float
    date: str
    source: FxRateMode

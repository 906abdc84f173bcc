from collections import Counter
from datetime import date, datetime, timezone

from pydantic import BaseModel, Field

from gym_registry.models.enums import Role
from gym_registry.services.user_registry import UserRegistry


class OutstandingDue(BaseModel):
    member_id: str
    name: str
    membership_expiry: date


class RegistryReport(BaseModel):
    total_users: int
    members: int
    trainers: int
    admins: int
    active_members: int
    expired_members: int
    total_revenue: float
    total_trainer_earnings: float
    net_revenue: float
    membership_breakdown: dict[str, int] = Field(default_factory=dict)
    available_trainers: int
    fully_booked_trainers: int
    outstanding_dues: list[OutstandingDue] = Field(default_factory=list)
    generated_at: datetime


class AnalyticsService:
    @staticmethod
    def build_report(registry: UserRegistry, today: date | None = None) -> RegistryReport:
        today = today or date.today()
        members = registry.members()
        trainers = registry.trainers()

        # 1. Membership status
        active_members = 0
        expired_members = 0
        outstanding: list[OutstandingDue] = []
        for member in members:
            expired = member.profile.is_membership_expired(today)
            if expired:
                expired_members += 1
                outstanding.append(
                    OutstandingDue(
                        member_id=member.id,
                        name=member.name,
                        membership_expiry=member.profile.membership_expiry,
                    )
                )
            elif member.is_active:
                active_members += 1

        # 2. Money
        total_revenue = sum(member.profile.total_payments for member in members)
        total_earnings = sum(trainer.profile.total_earnings for trainer in trainers)

        # 3. Trainer utilisation, active trainers only
        available = 0
        fully_booked = 0
        for trainer in trainers:
            if not trainer.is_active:
                continue
            if trainer.profile.has_capacity:
                available += 1
            else:
                fully_booked += 1

        breakdown = Counter(member.profile.membership_type for member in members)

        return RegistryReport(
            total_users=registry.count(),
            members=len(members),
            trainers=len(trainers),
            admins=registry.count(Role.ADMIN),
            active_members=active_members,
            expired_members=expired_members,
            total_revenue=total_revenue,
            total_trainer_earnings=total_earnings,
            net_revenue=total_revenue - total_earnings,
            membership_breakdown=dict(sorted(breakdown.items())),
            available_trainers=available,
            fully_booked_trainers=fully_booked,
            outstanding_dues=outstanding,
            generated_at=datetime.now(timezone.utc),
        )

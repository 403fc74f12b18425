"""Pydantic models used for record input and series output.

Input models describe the rows the data source yields for one gym. They are
lenient on purpose: values are kept as received and only interpreted by the
normalization step. Output models define the chart-ready series consumed by
the dashboard and tests.
"""

from __future__ import annotations

from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SignupRecord(BaseModel):
    """Schema for a user signup row."""
    model_config = ConfigDict(extra="ignore")
    id: str | int | None = None
    created_at: datetime | str | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )


class MembershipRecord(BaseModel):
    """Schema for a membership row joined with its package price.

    Attributes:
        id: Membership row id.
        user_id: Owning user id.
        package_name: Subscription tier label; may be missing upstream.
        status: Free-form membership status label (e.g. 'active').
        price: Package price; missing means no revenue contribution.
        coaching_cost: One-to-one coaching cost billed alongside the package.
        created_at: When the membership was created.
    """
    model_config = ConfigDict(extra="ignore")
    id: str | int | None = None
    user_id: str | int | None = Field(
        default=None, validation_alias=AliasChoices("user_id", "userId")
    )
    package_name: str | None = Field(
        default=None, validation_alias=AliasChoices("package_name", "packageName")
    )
    status: str | None = None
    price: float | str | None = Field(
        default=None, validation_alias=AliasChoices("price", "package_price")
    )
    coaching_cost: float | str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "coaching_cost", "coachingCost", "one_to_one_coaching_cost"
        ),
    )
    created_at: datetime | str | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )


class StaffRecord(BaseModel):
    """Schema for a staff/trainer row."""
    model_config = ConfigDict(extra="ignore")
    id: str | int | None = None
    full_name: str | None = None
    is_active: bool = False
    role_id: str | None = None


class GrowthPoint(BaseModel):
    """Signups per month bucket."""
    model_config = ConfigDict(extra="forbid")
    month_label: str
    count: int = Field(..., ge=0)


class DistributionPoint(BaseModel):
    """Record count per categorical label (package or status)."""
    model_config = ConfigDict(extra="forbid")
    name: str
    value: int = Field(..., ge=0)


class RevenuePoint(BaseModel):
    """Summed package price per month bucket."""
    model_config = ConfigDict(extra="forbid")
    month_label: str
    revenue: float


class AmountPoint(BaseModel):
    """Named monetary total (revenue breakdown bars)."""
    model_config = ConfigDict(extra="forbid")
    name: str
    value: float


class RoleCount(BaseModel):
    model_config = ConfigDict(extra="forbid")
    role: str
    count: int = Field(..., ge=0)


class StaffBreakdown(BaseModel):
    """Staff counted per role plus overall totals."""
    model_config = ConfigDict(extra="forbid")
    roles: list[RoleCount] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    active: int = Field(0, ge=0)


class DataQualityReport(BaseModel):
    """Counts of rows that were excluded from one or more series.

    Attributes:
        signups_total: Signup rows received.
        signups_bad_created_at: Signups left out of growth (no usable date).
        memberships_total: Membership rows received.
        memberships_bad_created_at: Memberships without a usable date.
        memberships_bad_price: Memberships with a non-numeric price.
        memberships_excluded_from_revenue: Memberships left out of revenue
            for either reason; a row with both problems counts once, so
            this can be smaller than the sum of the two counters above.
    """
    model_config = ConfigDict(extra="forbid")
    signups_total: int = Field(0, ge=0)
    signups_bad_created_at: int = Field(0, ge=0)
    memberships_total: int = Field(0, ge=0)
    memberships_bad_created_at: int = Field(0, ge=0)
    memberships_bad_price: int = Field(0, ge=0)
    memberships_excluded_from_revenue: int = Field(0, ge=0)

    @property
    def has_issues(self) -> bool:
        return bool(
            self.signups_bad_created_at
            or self.memberships_bad_created_at
            or self.memberships_bad_price
        )


class AnalyticsResult(BaseModel):
    """All series for one reporting view, computed from a single snapshot.

    Attributes:
        growth: Signups per month, first-seen order.
        package_distribution: Memberships per package, first-seen order.
        revenue: Revenue per month, first-seen order.
        status_distribution: Memberships per status, first-seen order.
        top_packages: Package distribution sorted by value (descending, stable)
            and truncated.
        loaded: Completion flag for the consuming view.
        data_quality: Excluded-row counters.
    """
    model_config = ConfigDict(extra="forbid")
    growth: list[GrowthPoint] = Field(default_factory=list)
    package_distribution: list[DistributionPoint] = Field(default_factory=list)
    revenue: list[RevenuePoint] = Field(default_factory=list)
    status_distribution: list[DistributionPoint] = Field(default_factory=list)
    top_packages: list[DistributionPoint] = Field(default_factory=list)
    loaded: bool = True
    data_quality: DataQualityReport = Field(default_factory=DataQualityReport)

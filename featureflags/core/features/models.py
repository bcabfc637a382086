"""
Feature Flag Models - SQLAlchemy models for feature flags.

Tables:
- feature_flags: Flag name, status and requirement type
- feature_flag_filters: One row per filter; only the columns of the
  row's filter_type are meaningful
- feature_flag_filter_users: Targeting users (include or exclude)
"""

from datetime import datetime
from sqlalchemy import String, Integer, Boolean, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from featureflags.models.base import Base, TimestampMixin


class FeatureFlagModel(Base, TimestampMixin):
    """
    Feature flag definition.

    updated_at doubles as the optimistic concurrency token.
    """

    __tablename__ = "feature_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    status: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(10), default="Any", nullable=False)

    filters: Mapped[list["FeatureFlagFilterModel"]] = relationship(
        back_populates="flag",
        cascade="all, delete-orphan",
        order_by="FeatureFlagFilterModel.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        status = "ON" if self.status else "OFF"
        return f"<FeatureFlag {self.name} [{status}]>"


class FeatureFlagFilterModel(Base):
    """
    A filter attached to a flag.

    Examples by filter_type:
    - Percentage: percentage_value=25
    - TimeWindow: time_start, time_end, recurrence_* columns
    - JSON: json='{"name": "Custom", "parameters": {...}}'
    - Targeting: users rows
    """

    __tablename__ = "feature_flag_filters"
    __table_args__ = (
        Index("idx_feature_flag_filters_flag", "feature_flag_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feature_flag_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("feature_flags.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    filter_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Percentage
    percentage_value: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # TimeWindow
    time_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recurrence_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    recurrence_interval: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Comma separated day names, e.g. "Monday,Friday"
    recurrence_days_of_week: Mapped[str | None] = mapped_column(String(100), nullable=True)
    recurrence_first_day_of_week: Mapped[str | None] = mapped_column(String(10), nullable=True)
    recurrence_range_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    recurrence_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recurrence_occurrences: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # JSON
    json: Mapped[str | None] = mapped_column(Text, nullable=True)

    flag: Mapped[FeatureFlagModel] = relationship(back_populates="filters")
    users: Mapped[list["FeatureFlagFilterUserModel"]] = relationship(
        back_populates="filter",
        cascade="all, delete-orphan",
        order_by="FeatureFlagFilterUserModel.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<FeatureFlagFilter {self.filter_type} #{self.position} of flag {self.feature_flag_id}>"


class FeatureFlagFilterUserModel(Base):
    """
    Targeting user of a filter.

    include=True: listed in the audience
    include=False: excluded from the audience
    """

    __tablename__ = "feature_flag_filter_users"
    __table_args__ = (
        Index("idx_feature_flag_filter_users_filter", "feature_flag_filter_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feature_flag_filter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("feature_flag_filters.id", ondelete="CASCADE"),
        nullable=False,
    )
    user: Mapped[str] = mapped_column(String(200), nullable=False)
    include: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    filter: Mapped[FeatureFlagFilterModel] = relationship(back_populates="users")

    def __repr__(self) -> str:
        mode = "include" if self.include else "exclude"
        return f"<FeatureFlagFilterUser {self.user} ({mode})>"

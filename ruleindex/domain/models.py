from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ruleindex.domain.keys import ActiveRuleKey, RuleKey


class Base(DeclarativeBase):
    pass


class QualityProfile(Base):
    __tablename__ = "quality_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Stable external identifier; forms the profile part of active rule keys.
    kee: Mapped[str] = mapped_column(String(255), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    language: Mapped[str] = mapped_column(String(64))
    parent_kee: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Rule(Base):
    __tablename__ = "rules"
    __table_args__ = (UniqueConstraint("repository_key", "rule_key", name="uq_rules_repository_rule"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    repository_key: Mapped[str] = mapped_column(String(255))
    rule_key: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Default severity of the rule itself; activations carry their own.
    severity: Mapped[str] = mapped_column(String(16))
    language: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="READY")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    params: Mapped[list[RuleParam]] = relationship(back_populates="rule", order_by="RuleParam.id")

    @property
    def key(self) -> RuleKey:
        return RuleKey.of(self.repository_key, self.rule_key)


class RuleParam(Base):
    __tablename__ = "rule_params"
    __table_args__ = (UniqueConstraint("rule_id", "name", name="uq_rule_params_rule_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("rules.id"), index=True)
    name: Mapped[str] = mapped_column(String(128))
    param_type: Mapped[str] = mapped_column(String(64), default="STRING")
    default_value: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    rule: Mapped[Rule] = relationship(back_populates="params")


class ActiveRule(Base):
    __tablename__ = "active_rules"
    __table_args__ = (UniqueConstraint("profile_id", "rule_id", name="uq_active_rules_profile_rule"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(Integer, ForeignKey("quality_profiles.id"))
    rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("rules.id"))
    # Stored as loose strings; parsed into closed enums at the index boundary.
    severity: Mapped[str] = mapped_column(String(16))
    inheritance: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # Activation in the parent profile this one inherits from or overrides.
    parent_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("active_rules.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Joined loads keep the composite key derivable without extra round trips.
    profile: Mapped[QualityProfile] = relationship(lazy="joined")
    rule: Mapped[Rule] = relationship(lazy="joined")
    parent: Mapped[ActiveRule | None] = relationship(remote_side=[id])
    params: Mapped[list[ActiveRuleParam]] = relationship(
        back_populates="active_rule", order_by="ActiveRuleParam.id", cascade="all, delete-orphan"
    )

    @classmethod
    def create_for(cls, profile: QualityProfile, rule: Rule, **fields) -> ActiveRule:
        return cls(profile=profile, rule=rule, **fields)

    @property
    def key(self) -> ActiveRuleKey:
        return ActiveRuleKey.of(self.profile.kee, self.rule.key)


class ActiveRuleParam(Base):
    __tablename__ = "active_rule_params"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    active_rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("active_rules.id"))
    rule_param_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("rule_params.id"), nullable=True)
    # Copied from the rule parameter so projection needs no extra join.
    name: Mapped[str] = mapped_column(String(128))
    value: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    active_rule: Mapped[ActiveRule] = relationship(back_populates="params")

    @classmethod
    def create_for(cls, rule_param: RuleParam, value: str | None = None) -> ActiveRuleParam:
        return cls(rule_param_id=rule_param.id, name=rule_param.name, value=value)


Index("ix_active_rules_rule_id", ActiveRule.rule_id)
Index("ix_active_rules_profile_id", ActiveRule.profile_id)
Index("ix_active_rule_params_active_rule_id", ActiveRuleParam.active_rule_id)

"""SQLAlchemy models for the menu planning documents.

Nested documents (menu data, week structures, change lists) live in JSON
columns; ids are string keys so documents can be created before they are
persisted.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


# --- Service catalog ---
class Service(Base):
    __tablename__ = "services"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")


class SubService(Base):
    __tablename__ = "sub_services"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    service_id: Mapped[str] = mapped_column(ForeignKey("services.id"))
    name: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")


class MealPlan(Base):
    __tablename__ = "meal_plans"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")


class SubMealPlan(Base):
    __tablename__ = "sub_meal_plans"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    meal_plan_id: Mapped[str] = mapped_column(ForeignKey("meal_plans.id"))
    name: Mapped[str] = mapped_column(String(200))
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")
    is_repeat_plan: Mapped[bool] = mapped_column(Boolean, default=False)


class MenuItem(Base):
    __tablename__ = "menu_items"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[str] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active")


# --- Companies & structure ---
class Company(Base):
    __tablename__ = "companies"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(20), default="active")


class Building(Base):
    __tablename__ = "buildings"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"))
    name: Mapped[str] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(String(20), default="active")


class StructureAssignment(Base):
    __tablename__ = "structure_assignments"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"))
    building_id: Mapped[str] = mapped_column(ForeignKey("buildings.id"))
    week_structure: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)  # day -> [{serviceId}]
    status: Mapped[str] = mapped_column(String(20), default="active")


class MealPlanStructureAssignment(Base):
    __tablename__ = "meal_plan_structure_assignments"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"))
    building_id: Mapped[str] = mapped_column(ForeignKey("buildings.id"))
    # day -> [{serviceId, subServices: [{subServiceId, mealPlans: [{mealPlanId, subMealPlans: [...]}]}]}]
    week_structure: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(20), default="active")


# --- Menus ---
class CombinedMenu(Base):
    __tablename__ = "combined_menus"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    start_date: Mapped[str] = mapped_column(String(10))
    end_date: Mapped[str] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft | active | archived
    company_id: Mapped[str] = mapped_column(String(64), nullable=True)
    menu_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    __table_args__ = (Index("ix_combined_menus_range", "start_date", "end_date"),)


class CompanyMenu(Base):
    __tablename__ = "company_menus"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    combined_menu_id: Mapped[str] = mapped_column(ForeignKey("combined_menus.id"), nullable=True)
    company_id: Mapped[str] = mapped_column(String(64))
    building_id: Mapped[str] = mapped_column(String(64))
    company_name: Mapped[str] = mapped_column(String(200), nullable=True)
    building_name: Mapped[str] = mapped_column(String(200), nullable=True)
    start_date: Mapped[str] = mapped_column(String(10))
    end_date: Mapped[str] = mapped_column(String(10))
    status: Mapped[str] = mapped_column(String(20), default="active")
    menu_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class RepetitionLog(Base):
    __tablename__ = "repetition_logs"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    menu_start_date: Mapped[str] = mapped_column(String(10))
    menu_end_date: Mapped[str] = mapped_column(String(10))
    company_id: Mapped[str] = mapped_column(String(64), nullable=True)
    type: Mapped[str] = mapped_column(String(32))
    item_id: Mapped[str] = mapped_column(String(64))
    item_name: Mapped[str] = mapped_column(String(200), nullable=True)
    service_id: Mapped[str] = mapped_column(String(64))
    sub_service_id: Mapped[str] = mapped_column(String(64))
    meal_plan_id: Mapped[str] = mapped_column(String(64))
    sub_meal_plan_id: Mapped[str] = mapped_column(String(64))
    attempted_date: Mapped[str] = mapped_column(String(10))
    original_date: Mapped[str] = mapped_column(String(10), nullable=True)
    original_service_id: Mapped[str] = mapped_column(String(64), nullable=True)
    original_sub_service_id: Mapped[str] = mapped_column(String(64), nullable=True)
    original_meal_plan_id: Mapped[str] = mapped_column(String(64), nullable=True)
    original_sub_meal_plan_id: Mapped[str] = mapped_column(String(64), nullable=True)
    prev_date: Mapped[str] = mapped_column(String(10), nullable=True)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    __table_args__ = (Index("ix_repetition_logs_menu", "menu_start_date", "menu_end_date", "company_id"),)


class MenuUpdation(Base):
    __tablename__ = "menu_updations"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    menu_id: Mapped[str] = mapped_column(String(64))
    menu_type: Mapped[str] = mapped_column(String(20), default="combined")  # combined | company
    updation_number: Mapped[int] = mapped_column(Integer)
    changed_cells: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    total_changes: Mapped[int] = mapped_column(Integer, default=0)
    menu_start_date: Mapped[str] = mapped_column(String(10))
    menu_end_date: Mapped[str] = mapped_column(String(10))
    created_by: Mapped[str] = mapped_column(String(200), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

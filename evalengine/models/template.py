# evalengine/models/template.py
# Templates and grading scales are authored elsewhere; the engine only reads them.
from sqlalchemy import Column, Integer, String, Text, Boolean, Float, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from evalengine.database import Base

class GradingScale(Base):
    __tablename__ = "grading_scales"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    grades = relationship(
        "GradingScaleGrade", order_by="GradingScaleGrade.value", lazy="selectin", cascade="all, delete-orphan"
    )

class GradingScaleGrade(Base):
    __tablename__ = "grading_scale_grades"

    id = Column(Integer, primary_key=True, index=True)
    scale_id = Column(Integer, ForeignKey("grading_scales.id"), nullable=False)
    value = Column(Float, nullable=False)
    label = Column(String, nullable=False)
    description = Column(Text, nullable=True)

class Template(Base):
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    position = Column(String, nullable=True)  # position the template is written for
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    sections = relationship(
        "TemplateSection", order_by="TemplateSection.order", lazy="selectin", cascade="all, delete-orphan"
    )

class TemplateSection(Base):
    __tablename__ = "template_sections"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    order = Column(Integer, default=0)

    criteria = relationship(
        "TemplateCriterion", order_by="TemplateCriterion.order", lazy="selectin", cascade="all, delete-orphan"
    )

class TemplateCriterion(Base):
    __tablename__ = "template_criteria"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("template_sections.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    required = Column(Boolean, default=True)
    order = Column(Integer, default=0)
    grading_scale_id = Column(Integer, ForeignKey("grading_scales.id"), nullable=True)

    grading_scale = relationship("GradingScale", lazy="selectin")

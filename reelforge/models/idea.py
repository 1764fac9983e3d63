"""
Idea configuration tables.
Maintained by the content editor; the render queue only reads them.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from reelforge.database import Base
from reelforge.models.render_job import utcnow
import uuid

PERSONAS = ("main", "male", "female")
COUNTRIES = ("uk", "us", "ksa", "my")


class Idea(Base):
    __tablename__ = "ideas"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(Text, nullable=False)
    description = Column(Text)
    category = Column(String(100), nullable=False, default="general")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    personas = relationship("PersonaVariant", back_populates="idea", cascade="all, delete-orphan")

    @property
    def combinations(self):
        """Every configured (persona_type, country) pair"""
        return [(p.persona_type, c.country) for p in self.personas for c in p.countries]


class PersonaVariant(Base):
    __tablename__ = "persona_variants"
    __table_args__ = (UniqueConstraint("idea_id", "persona_type"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    idea_id = Column(String(36), ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False, index=True)
    persona_type = Column(String(20), nullable=False)

    idea = relationship("Idea", back_populates="personas")
    countries = relationship("CountryVariant", back_populates="persona", cascade="all, delete-orphan")


class CountryVariant(Base):
    __tablename__ = "country_variants"
    __table_args__ = (UniqueConstraint("persona_variant_id", "country"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    persona_variant_id = Column(String(36), ForeignKey("persona_variants.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    country = Column(String(10), nullable=False)

    persona = relationship("PersonaVariant", back_populates="countries")
    slides = relationship("SlideContent", back_populates="country_variant",
                          cascade="all, delete-orphan", order_by="SlideContent.slide_number")


class SlideContent(Base):
    __tablename__ = "slide_contents"
    __table_args__ = (UniqueConstraint("country_variant_id", "slide_number"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    country_variant_id = Column(String(36), ForeignKey("country_variants.id", ondelete="CASCADE"),
                                nullable=False, index=True)
    slide_number = Column(Integer, nullable=False)
    slide_type = Column(String(50), nullable=False, default="generic")
    content = Column(Text, nullable=False, default="")

    country_variant = relationship("CountryVariant", back_populates="slides")

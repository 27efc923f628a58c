#!/usr/bin/env python3
"""SQLAlchemy table definitions for the trait database.

Reference tables (sites, species, cultivars, citations, treatments,
variables, methods) are maintained elsewhere and only read by ingestion;
entities, traits and covariates are written by it.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Boolean,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow():
    return datetime.now(timezone.utc)


citations_treatments = Table(
    "citations_treatments",
    Base.metadata,
    Column("citation_id", Integer, ForeignKey("citations.id"), primary_key=True),
    Column("treatment_id", Integer, ForeignKey("treatments.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    login = Column(String, unique=True, nullable=False)
    name = Column(String)
    apikey = Column(String, unique=True)
    access_level = Column(Integer, default=4)
    created_at = Column(DateTime, default=_utcnow)


class Site(Base):
    __tablename__ = "sites"
    id = Column(Integer, primary_key=True)
    sitename = Column(String, nullable=False)
    city = Column(String)
    state = Column(String)
    country = Column(String)
    # IANA name ("America/Chicago") or fixed offset ("-05:00"); NULL means unknown
    time_zone = Column(String)
    notes = Column(Text)


class Specie(Base):
    __tablename__ = "species"
    id = Column(Integer, primary_key=True)
    genus = Column(String)
    species = Column(String)
    scientificname = Column(String)
    commonname = Column(String)
    AcceptedSymbol = Column(String)


class Cultivar(Base):
    __tablename__ = "cultivars"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    ecotype = Column(String)
    specie_id = Column(Integer, ForeignKey("species.id"))


class Citation(Base):
    __tablename__ = "citations"
    id = Column(Integer, primary_key=True)
    author = Column(String)
    year = Column(Integer)
    title = Column(String)
    journal = Column(String)
    doi = Column(String)

    treatments = relationship("Treatment", secondary=citations_treatments, back_populates="citations")


class Treatment(Base):
    __tablename__ = "treatments"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    definition = Column(String)
    control = Column(Boolean, default=False)

    citations = relationship("Citation", secondary=citations_treatments, back_populates="treatments")


class Variable(Base):
    __tablename__ = "variables"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    units = Column(String)
    description = Column(String)
    # Plausible range for recorded values; NULL means unbounded
    min = Column(Float)
    max = Column(Float)


class Method(Base):
    __tablename__ = "methods"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    citation_id = Column(Integer, ForeignKey("citations.id"))


class Entity(Base):
    __tablename__ = "entities"
    id = Column(Integer, primary_key=True)
    name = Column(String)
    notes = Column(Text)
    parent_id = Column(Integer, ForeignKey("entities.id"))
    created_at = Column(DateTime, default=_utcnow)


class Trait(Base):
    __tablename__ = "traits"
    id = Column(Integer, primary_key=True)
    site_id = Column(Integer, ForeignKey("sites.id"))
    specie_id = Column(Integer, ForeignKey("species.id"))
    citation_id = Column(Integer, ForeignKey("citations.id"))
    cultivar_id = Column(Integer, ForeignKey("cultivars.id"))
    treatment_id = Column(Integer, ForeignKey("treatments.id"))
    entity_id = Column(Integer, ForeignKey("entities.id"))
    variable_id = Column(Integer, ForeignKey("variables.id"), nullable=False)
    method_id = Column(Integer, ForeignKey("methods.id"))
    user_id = Column(Integer, ForeignKey("users.id"))
    date = Column(DateTime)
    dateloc = Column(Float)
    timeloc = Column(Float)
    mean = Column(Float, nullable=False)
    n = Column(Integer)
    statname = Column(String)
    stat = Column(Float)
    notes = Column(Text, default="")
    access_level = Column(Integer)
    checked = Column(Integer, default=0)
    created_at = Column(DateTime, default=_utcnow)

    covariates = relationship("Covariate", back_populates="trait")


class Covariate(Base):
    __tablename__ = "covariates"
    id = Column(Integer, primary_key=True)
    trait_id = Column(Integer, ForeignKey("traits.id"), nullable=False)
    variable_id = Column(Integer, ForeignKey("variables.id"), nullable=False)
    level = Column(Float, nullable=False)
    n = Column(Integer)
    statname = Column(String)
    stat = Column(Float)
    created_at = Column(DateTime, default=_utcnow)

    trait = relationship("Trait", back_populates="covariates")

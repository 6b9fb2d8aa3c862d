from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base

PLATE = "Plate"
WELL = "Well"
ASSET = "Asset"
SAMPLE = "Sample"

UNASSIGNED_PURPOSE = "Unassigned"
STOCK_PLATE_PURPOSE = "Stock Plate"


class Map(Base):
    __tablename__ = "maps"
    __table_args__ = (UniqueConstraint("description", "asset_size"),)
    id = Column(Integer, primary_key=True)
    description = Column(String, nullable=False)
    asset_size = Column(Integer, nullable=False)


class Asset(Base):
    __tablename__ = "assets"
    id = Column(Integer, primary_key=True)
    sti_type = Column(String, nullable=False)
    plate_purpose = Column(String)
    map_id = Column(Integer, ForeignKey("maps.id"))

    map = relationship("Map")


class ContainerAssociation(Base):
    __tablename__ = "container_associations"
    id = Column(Integer, primary_key=True)
    container_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    content_id = Column(Integer, ForeignKey("assets.id"), nullable=False, unique=True)


class Uuid(Base):
    __tablename__ = "uuids"
    __table_args__ = (UniqueConstraint("resource_type", "external_id"),)
    id = Column(Integer, primary_key=True)
    resource_type = Column(String, nullable=False)
    resource_id = Column(Integer, nullable=False)
    external_id = Column(String, nullable=False, index=True)


class Sample(Base):
    __tablename__ = "samples"
    id = Column(Integer, primary_key=True)
    name = Column(String)


class Aliquot(Base):
    __tablename__ = "aliquots"
    id = Column(Integer, primary_key=True)
    receptacle_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    sample_id = Column(Integer, ForeignKey("samples.id"), nullable=False)

    sample = relationship("Sample")

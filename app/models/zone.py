from sqlalchemy import Column, String, Float, CheckConstraint

from app.database import Base


class RestrictedZone(Base):
    __tablename__ = "restricted_zones"
    __table_args__ = (CheckConstraint("radius_meters > 0", name="ck_zone_radius_positive"),)

    id = Column(String, primary_key=True)
    zone_name = Column(String, nullable=False)
    zone_type = Column(String, nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lng = Column(Float, nullable=False)
    radius_meters = Column(Float, nullable=False)

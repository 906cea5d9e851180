# Database Models for the Collabmart Platform
# Core identity tables shared by the marketplace and storefront modules

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, Enum, Boolean
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import uuid
import enum

Base = declarative_base()

def generate_uuid():
    return str(uuid.uuid4())


class UserType(str, enum.Enum):
    BRAND = "brand"
    INFLUENCER = "influencer"
    CUSTOMER = "customer"
    ADMIN = "admin"


# Models
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False, default="")
    name = Column(String(255))
    user_type = Column(Enum(UserType, values_callable=lambda x: [e.value for e in x], name="usertype"), default=UserType.BRAND)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    influencer_profile = relationship("InfluencerProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")


class InfluencerProfile(Base):
    """Extended profile for influencer users. Owns the referral code used at checkout."""
    __tablename__ = "influencer_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    display_name = Column(String(100), nullable=False)
    niche = Column(String(100))
    referral_code = Column(String(32), unique=True, nullable=False, index=True)  # stored upper-case
    total_followers = Column(Integer, default=0)
    channels = Column(JSON)  # ["instagram", "tiktok"]

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="influencer_profile")
    collaborations = relationship("Collaboration", back_populates="influencer", cascade="all, delete-orphan", passive_deletes=True)


class Notification(Base):
    """In-app notifications. Written by the side-effect worker, never inside a primary write."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_type = Column(String(20), nullable=False)  # brand, influencer, customer

    type = Column(String(50), nullable=False)  # content_approved, campaign_completed, etc.
    title = Column(String(200), nullable=False)
    message = Column(Text)
    related_id = Column(String(36))
    data = Column(JSON)

    read = Column(Boolean, default=False)
    read_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="notifications")

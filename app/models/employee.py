from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from app.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    department = Column(String(100), nullable=True)

    # Optional link to a login account
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), unique=True, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="employee_profile")
    sickness_records = relationship(
        "SicknessRecord",
        foreign_keys="[SicknessRecord.employee_id]",
        back_populates="employee",
        cascade="all, delete-orphan",
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Employee {self.id} {self.full_name}>"

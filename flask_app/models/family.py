# flask_app/models/family.py
"""
Family household, parent/guardian and the student-parent join table.
"""

from sqlalchemy import Enum, Index

from .base import BaseModel, db
from .enums import ParentRelationship


class Family(BaseModel):
    """Household linking one or more parents and students"""

    __tablename__ = "families"

    id = db.Column(db.Integer, primary_key=True)
    family_name = db.Column(db.String(200), nullable=False, index=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(50), nullable=True)
    zip_code = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    parents = db.relationship("Parent", back_populates="family")
    students = db.relationship("Student", back_populates="family")

    def __repr__(self):
        return f"<Family {self.family_name}>"

    def to_dict(self):
        return {
            "id": self.id,
            "familyName": self.family_name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "phone": self.phone,
            "email": self.email,
        }


class Parent(BaseModel):
    """Parent or guardian; always belongs to exactly one family"""

    __tablename__ = "parents"

    id = db.Column(db.Integer, primary_key=True)
    family_id = db.Column(db.Integer, db.ForeignKey("families.id"), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False, default="")
    relationship = db.Column(
        Enum(ParentRelationship, name="parent_relationship_enum"),
        nullable=False,
        default=ParentRelationship.GUARDIAN,
    )
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_primary_contact = db.Column(db.Boolean, default=False, nullable=False)
    can_pickup = db.Column(db.Boolean, default=True, nullable=False)
    emergency_contact = db.Column(db.Boolean, default=True, nullable=False)

    family = db.relationship("Family", back_populates="parents")
    student_links = db.relationship("StudentParent", back_populates="parent", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_parent_name", "family_id", "last_name", "first_name"),)

    def __repr__(self):
        return f"<Parent {self.get_full_name()}>"

    def get_full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "familyId": self.family_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "relationship": self.relationship.value if self.relationship else None,
            "phone": self.phone,
            "isPrimaryContact": self.is_primary_contact,
            "canPickup": self.can_pickup,
            "emergencyContact": self.emergency_contact,
        }


class StudentParent(BaseModel):
    """
    Junction table linking parents to students.
    One row per (student, parent) pair; re-linking updates the row in place.
    """

    __tablename__ = "student_parents"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("parents.id"), nullable=False)
    relationship = db.Column(
        Enum(ParentRelationship, name="parent_relationship_enum"),
        nullable=True,
    )
    is_primary = db.Column(db.Boolean, default=False, nullable=False)

    student = db.relationship("Student", back_populates="parent_links")
    parent = db.relationship("Parent", back_populates="student_links")

    __table_args__ = (db.UniqueConstraint("student_id", "parent_id", name="_student_parent_uc"),)

    def __repr__(self):
        return f"<StudentParent student={self.student_id} parent={self.parent_id}>"

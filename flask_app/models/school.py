# flask_app/models/school.py
"""
Grade and class reference tables.
"""

from sqlalchemy import Index

from .base import BaseModel, db


class Grade(BaseModel):
    """A grade level (e.g. "1st Grade")"""

    __tablename__ = "grades"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    level = db.Column(db.Integer, nullable=True)  # Sort order

    classes = db.relationship("SchoolClass", back_populates="grade")

    def __repr__(self):
        return f"<Grade {self.name}>"

    def to_dict(self):
        return {"id": self.id, "name": self.name, "level": self.level}


class SchoolClass(BaseModel):
    """A class section, optionally attached to a grade"""

    __tablename__ = "classes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    grade_id = db.Column(db.Integer, db.ForeignKey("grades.id"), nullable=True)

    grade = db.relationship("Grade", back_populates="classes")
    assignments = db.relationship("ClassAssignment", back_populates="school_class")

    __table_args__ = (Index("idx_class_grade_name", "grade_id", "name"),)

    def __repr__(self):
        return f"<SchoolClass {self.name}>"

    def to_dict(self):
        return {"id": self.id, "name": self.name, "gradeId": self.grade_id}

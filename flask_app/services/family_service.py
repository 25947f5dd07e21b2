"""
Family and parent write primitives used by the importer.

Methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from flask_app.models import Family, Parent, ParentRelationship, StudentParent, db


class FamilyService:
    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def get(self, family_id: int) -> Family | None:
        return self.session.get(Family, family_id)

    def find_matching(self, family_name: str, address: str | None = None) -> Family | None:
        """Case-insensitive family-name match, narrowed by address when one is given."""

        if not family_name:
            return None
        stmt = select(Family).where(func.lower(Family.family_name) == family_name.lower())
        if address:
            stmt = stmt.where(func.lower(Family.address) == address.lower())
        return self.session.scalars(stmt.order_by(Family.id).limit(1)).first()

    def create(self, family_name: str, *, address: str | None = None, phone: str | None = None) -> Family:
        family = Family(family_name=family_name, address=address or None, phone=phone or None)
        self.session.add(family)
        self.session.flush()
        return family


class ParentService:
    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def find_in_family(self, family_id: int, first_name: str, last_name: str) -> Parent | None:
        stmt = (
            select(Parent)
            .where(
                Parent.family_id == family_id,
                func.lower(Parent.first_name) == first_name.lower(),
                func.lower(Parent.last_name) == (last_name or "").lower(),
            )
            .order_by(Parent.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def create(
        self,
        family_id: int,
        first_name: str,
        last_name: str,
        *,
        relationship: ParentRelationship = ParentRelationship.GUARDIAN,
        phone: str | None = None,
        is_primary_contact: bool = False,
    ) -> Parent:
        parent = Parent(
            family_id=family_id,
            first_name=first_name,
            last_name=last_name or "",
            relationship=relationship,
            phone=phone or None,
            is_primary_contact=is_primary_contact,
            can_pickup=True,
            emergency_contact=True,
        )
        self.session.add(parent)
        self.session.flush()
        return parent

    def link_to_student(
        self,
        parent_id: int,
        student_id: int,
        *,
        relationship: ParentRelationship | None = None,
        is_primary: bool = False,
    ) -> StudentParent:
        """Insert or refresh the (student, parent) link."""

        link = self.session.scalars(
            select(StudentParent).where(
                StudentParent.student_id == student_id,
                StudentParent.parent_id == parent_id,
            )
        ).first()
        if link is None:
            link = StudentParent(student_id=student_id, parent_id=parent_id)
            self.session.add(link)
        link.relationship = relationship
        link.is_primary = is_primary
        self.session.flush()
        return link

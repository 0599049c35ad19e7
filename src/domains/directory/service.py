# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School directory service.

Find-or-create primitives for the entities a bulk import touches:
- Year groups and classes, found or created by name
- Students, keyed by admission number
- Parents, keyed by contact email
- Parent-student links, created at most once per pair

All operations run on the caller's AsyncSession so one row's writes share
a single transaction. Login identities created along the way are recorded
in a CompensationLog so the caller can delete them if the row fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models import (
    Parent,
    ParentStudentRelationship,
    SchoolClass,
    Student,
    YearGroup,
)
from src.services.identity import IdentityProvider, IdentityProviderError

logger = logging.getLogger(__name__)

UpsertAction = Literal["created", "updated"]


class DirectoryError(Exception):
    """Base exception for directory service errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RecordPersistenceError(DirectoryError):
    """Raised when a directory record cannot be written."""

    pass


@dataclass
class StudentDetails:
    """Student fields taken from one import row."""

    admission_no: str
    first_name: str
    last_name: str
    username: str
    email: str
    gender: str | None = None
    dob: date | None = None


@dataclass
class CompensationLog:
    """Login identities created during one unit of work.

    Attributes:
        identity_ids: Identity ids in creation order.
    """

    identity_ids: list[str] = field(default_factory=list)

    def record(self, identity_id: str) -> None:
        self.identity_ids.append(identity_id)

    async def rollback(self, identity: IdentityProvider) -> list[str]:
        """Delete every recorded identity, newest first.

        Each deletion is attempted even if an earlier one fails.

        Args:
            identity: Provider the identities were created with.

        Returns:
            Ids whose deletion failed.
        """
        failed: list[str] = []
        while self.identity_ids:
            identity_id = self.identity_ids.pop()
            try:
                await identity.delete_user(identity_id)
                logger.info("Compensated login identity: id=%s", identity_id)
            except IdentityProviderError as e:
                logger.error(
                    "Failed to delete login identity during compensation: id=%s, error=%s",
                    identity_id,
                    e,
                )
                failed.append(identity_id)
        return failed


class DirectoryService:
    """Idempotent directory operations for bulk imports.

    Attributes:
        db: Async database session owned by the caller.
        identity: Login identity provider.
        default_password: Initial password for new identities.
    """

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityProvider,
        default_password: str,
    ) -> None:
        """Initialize directory service.

        Args:
            db: Async database session owned by the caller.
            identity: Login identity provider.
            default_password: Initial password for new identities.
        """
        self.db = db
        self.identity = identity
        self.default_password = default_password

    async def find_or_create_year_group(self, name: str) -> YearGroup:
        """Find a year group by name, creating it if missing."""
        result = await self.db.execute(select(YearGroup).where(YearGroup.name == name))
        year_group = result.scalar_one_or_none()
        if year_group is not None:
            return year_group

        year_group = YearGroup(name=name, description=f"Year group for {name}")
        self.db.add(year_group)
        await self._flush("year group")

        logger.info("Created year group: name=%s, id=%s", name, year_group.id)
        return year_group

    async def find_or_create_class(self, name: str, year_group_id: str) -> SchoolClass:
        """Find a class by name, creating it under the given year group if missing."""
        result = await self.db.execute(select(SchoolClass).where(SchoolClass.name == name))
        school_class = result.scalar_one_or_none()
        if school_class is not None:
            return school_class

        school_class = SchoolClass(name=name, year_group_id=year_group_id)
        self.db.add(school_class)
        await self._flush("class")

        logger.info("Created class: name=%s, year_group=%s", name, year_group_id)
        return school_class

    async def upsert_student(
        self,
        details: StudentDetails,
        year_group: YearGroup,
        school_class: SchoolClass,
        compensation: CompensationLog,
    ) -> tuple[Student, UpsertAction]:
        """Update the student with this admission number, or create one.

        A new student gets a login identity first; the identity id is
        recorded in ``compensation`` before the record is written.

        Returns:
            Tuple of (student, action).

        Raises:
            IdentityProviderError: If the login identity cannot be created.
            RecordPersistenceError: If the record cannot be written.
        """
        result = await self.db.execute(
            select(Student).where(Student.admission_no == details.admission_no)
        )
        student = result.scalar_one_or_none()

        if student is not None:
            student.first_name = details.first_name
            student.last_name = details.last_name
            if details.gender is not None:
                student.gender = details.gender
            if details.dob is not None:
                student.dob = details.dob
            student.current_year_group_id = year_group.id
            student.class_id = school_class.id
            student.username = details.username
            student.email = details.email
            await self._flush("student")

            logger.info("Updated student: admission_no=%s, id=%s", details.admission_no, student.id)
            return student, "updated"

        auth_user = await self.identity.create_user(
            email=details.email,
            password=self.default_password,
            metadata=self._metadata(details.first_name, details.last_name, "student"),
        )
        compensation.record(auth_user.id)

        student = Student(
            auth_user_id=auth_user.id,
            admission_no=details.admission_no,
            first_name=details.first_name,
            last_name=details.last_name,
            gender=details.gender,
            dob=details.dob,
            username=details.username,
            email=details.email,
            current_year_group_id=year_group.id,
            enrolled_year_group_id=year_group.id,
            class_id=school_class.id,
            status="active",
        )
        self.db.add(student)
        await self._flush("student")

        logger.info("Created student: admission_no=%s, id=%s", details.admission_no, student.id)
        return student, "created"

    async def upsert_parent(
        self,
        email: str,
        last_name: str | None,
        compensation: CompensationLog,
    ) -> tuple[Parent, UpsertAction]:
        """Update the parent with this contact email, or create one.

        Returns:
            Tuple of (parent, action).

        Raises:
            IdentityProviderError: If the login identity cannot be created.
            RecordPersistenceError: If the record cannot be written.
        """
        email = email.strip().lower()
        result = await self.db.execute(select(Parent).where(Parent.email == email))
        parent = result.scalar_one_or_none()

        if parent is not None:
            if not parent.last_name and last_name:
                parent.last_name = last_name
            parent.status = "active"
            await self._flush("parent")

            logger.info("Updated parent: email=%s, id=%s", email, parent.id)
            return parent, "updated"

        auth_user = await self.identity.create_user(
            email=email,
            password=self.default_password,
            metadata=self._metadata(None, last_name, "parent"),
        )
        compensation.record(auth_user.id)

        parent = Parent(
            auth_user_id=auth_user.id,
            email=email,
            last_name=last_name,
            status="active",
        )
        self.db.add(parent)
        await self._flush("parent")

        logger.info("Created parent: email=%s, id=%s", email, parent.id)
        return parent, "created"

    async def ensure_link(
        self,
        parent_id: str,
        student_id: str,
    ) -> tuple[ParentStudentRelationship, bool]:
        """Link a parent and a student unless they are already linked.

        Returns:
            Tuple of (relationship, created).
        """
        result = await self.db.execute(
            select(ParentStudentRelationship).where(
                ParentStudentRelationship.parent_id == parent_id,
                ParentStudentRelationship.student_id == student_id,
            )
        )
        relationship = result.scalar_one_or_none()
        if relationship is not None:
            logger.debug(
                "Parent-student relationship already exists: parent=%s, student=%s",
                parent_id,
                student_id,
            )
            return relationship, False

        relationship = ParentStudentRelationship(parent_id=parent_id, student_id=student_id)
        self.db.add(relationship)
        await self._flush("parent-student relationship")

        logger.info("Linked parent %s with student %s", parent_id, student_id)
        return relationship, True

    async def _flush(self, entity: str) -> None:
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            raise RecordPersistenceError(f"Failed to save {entity} record: {_short_reason(e)}") from e

    @staticmethod
    def _metadata(first_name: str | None, last_name: str | None, role: str) -> dict[str, Any]:
        return {"first_name": first_name, "last_name": last_name, "role": role}


def _short_reason(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    reason = str(orig) if orig is not None else str(error)
    return reason.splitlines()[0] if reason else type(error).__name__

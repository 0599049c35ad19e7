# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Row processor for bulk student imports.

Turns one parsed CSV row into directory entities:

1. Validate the row and derive the login username and email.
2. Find or create the year group and the class.
3. Find (by admission number) or create the student.
4. Find (by contact email) or create the parent.
5. Link parent and student, reusing an existing link.

Each row runs in its own database transaction. Login identities created
for the row are tracked and deleted again if any later step fails, so a
failed row leaves nothing behind.

Ordinary data and dependency problems come back as RowFailure. Anything
else propagates to the caller after compensation has run.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domains.bulk_upload.csv_parser import StudentRow
from src.domains.bulk_upload.exceptions import RowValidationError
from src.domains.directory import (
    CompensationLog,
    DirectoryError,
    DirectoryService,
    StudentDetails,
)
from src.services.identity import IdentityProvider, IdentityProviderError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_FIELDS: dict[str, str] = {
    "mis_id": "MIS ID",
    "forename": "Forename",
    "legal_surname": "Legal Surname",
    "reg": "Reg",
    "year": "Year",
    "primary_email": "Primary Email",
}

DOB_FORMATS = ("%d %B %Y", "%d %b %Y", "%Y-%m-%d", "%d/%m/%Y")

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class RowSuccess:
    """Entities a row resolved to."""

    student_id: str
    parent_id: str
    student_action: Literal["created", "updated"]
    parent_action: Literal["created", "updated"]
    linked: bool
    relationship_id: str | None = None

    ok = True

    @property
    def message(self) -> str:
        return f"Student {self.student_action} and parent {self.parent_action} successfully"


@dataclass(frozen=True)
class RowFailure:
    """Why a row could not be imported."""

    reason: str

    ok = False


RowOutcome = RowSuccess | RowFailure


@dataclass(frozen=True)
class ValidatedRow:
    """A row that passed validation, with derived identity fields."""

    details: StudentDetails
    reg: str
    year: str
    parent_email: str


def derive_username(forename: str, surname: str) -> str:
    """Deterministic login name: ``forename.surname``, lower-cased, no whitespace."""
    first = _WHITESPACE.sub("", forename.lower())
    last = _WHITESPACE.sub("", surname.lower())
    return f"{first}.{last}"


def parse_dob(value: str) -> date:
    """Parse a date of birth in one of the accepted formats.

    Raises:
        RowValidationError: If no format matches.
    """
    for fmt in DOB_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise RowValidationError(f"Invalid date format: {value}")


def validate_row(row: StudentRow, student_email_domain: str) -> ValidatedRow:
    """Check a row and derive its identity fields.

    Args:
        row: Parsed CSV row.
        student_email_domain: Domain for generated student logins.

    Returns:
        The validated row.

    Raises:
        RowValidationError: If a required field is missing or a value is malformed.
    """
    missing = [label for name, label in REQUIRED_FIELDS.items() if not getattr(row, name)]
    if missing:
        raise RowValidationError(f"Missing required fields: {', '.join(missing)}")

    parent_email = row.primary_email.strip()
    if not EMAIL_PATTERN.match(parent_email):
        raise RowValidationError(f"Invalid email format: {parent_email}")

    gender = None
    if row.gender:
        gender = row.gender.upper()
        if gender not in ("M", "F"):
            raise RowValidationError("Gender must be M or F")

    dob = parse_dob(row.dob) if row.dob else None

    username = derive_username(row.forename, row.legal_surname)
    return ValidatedRow(
        details=StudentDetails(
            admission_no=row.mis_id,
            first_name=row.forename,
            last_name=row.legal_surname,
            username=username,
            email=f"{username}@{student_email_domain}",
            gender=gender,
            dob=dob,
        ),
        reg=row.reg,
        year=row.year,
        parent_email=parent_email.lower(),
    )


class RowProcessor:
    """Imports one row at a time into the school directory.

    Attributes:
        sessionmaker: Factory for per-row database sessions.
        identity: Login identity provider.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        identity: IdentityProvider,
        default_password: str,
        student_email_domain: str,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.identity = identity
        self.default_password = default_password
        self.student_email_domain = student_email_domain

    async def process(self, row: StudentRow) -> RowOutcome:
        """Import one row.

        Args:
            row: Parsed CSV row.

        Returns:
            RowSuccess, or RowFailure for validation, directory and
            identity problems.
        """
        try:
            validated = validate_row(row, self.student_email_domain)
        except RowValidationError as e:
            return RowFailure(reason=e.message)

        compensation = CompensationLog()
        try:
            async with self.sessionmaker() as db:
                async with db.begin():
                    directory = DirectoryService(db, self.identity, self.default_password)
                    outcome = await self._apply(directory, validated, compensation)
        except (DirectoryError, IdentityProviderError, SQLAlchemyError) as e:
            await self._compensate(row, compensation)
            return RowFailure(reason=_describe(e))
        except Exception:
            await self._compensate(row, compensation)
            raise

        return outcome

    async def _apply(
        self,
        directory: DirectoryService,
        row: ValidatedRow,
        compensation: CompensationLog,
    ) -> RowSuccess:
        year_group = await directory.find_or_create_year_group(row.year)
        school_class = await directory.find_or_create_class(row.reg, year_group.id)

        student, student_action = await directory.upsert_student(
            row.details, year_group, school_class, compensation
        )
        parent, parent_action = await directory.upsert_parent(
            row.parent_email, row.details.last_name, compensation
        )
        relationship, _ = await directory.ensure_link(parent.id, student.id)

        return RowSuccess(
            student_id=student.id,
            parent_id=parent.id,
            student_action=student_action,
            parent_action=parent_action,
            linked=True,
            relationship_id=relationship.id,
        )

    async def _compensate(self, row: StudentRow, compensation: CompensationLog) -> None:
        if not compensation.identity_ids:
            return
        logger.warning(
            "Row failed after creating %d login identities, deleting them: mis_id=%s",
            len(compensation.identity_ids),
            row.mis_id,
        )
        await compensation.rollback(self.identity)


def _describe(error: Exception) -> str:
    if isinstance(error, DirectoryError):
        return error.message
    if isinstance(error, IdentityProviderError):
        return f"Failed to create auth user: {error.message}"
    return f"Database error: {type(error).__name__}"

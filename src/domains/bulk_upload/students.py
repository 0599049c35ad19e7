# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Single-student operations next to the bulk import.

Imports one row synchronously through the same RowProcessor the
background runner uses, so a row submitted here is validated, deduplicated
and compensated exactly like a CSV row. Also looks students up by
admission number.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domains.bulk_upload.csv_parser import StudentRow
from src.domains.bulk_upload.exceptions import StudentImportRejectedError, StudentNotFoundError
from src.domains.bulk_upload.row_processor import RowFailure, RowProcessor
from src.infrastructure.database.models import SchoolClass, Student, YearGroup
from src.models.bulk_upload import (
    CreateStudentRequest,
    CreateStudentResponse,
    StudentLookupResponse,
    StudentRecord,
)

logger = logging.getLogger(__name__)


class StudentImportService:
    """Synchronous single-row import and student lookup.

    Attributes:
        sessionmaker: Factory for database sessions.
        processor: Row processor shared with bulk uploads.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        processor: RowProcessor,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.processor = processor

    async def import_student(self, request: CreateStudentRequest) -> CreateStudentResponse:
        """Import one row and wait for the outcome.

        Returns:
            The student and parent the row resolved to, with the action
            taken for each.

        Raises:
            StudentImportRejectedError: If the row fails validation or the
                directory or identity provider rejects it.
        """
        row = StudentRow.from_dict(request.model_dump())
        outcome = await self.processor.process(row)

        if isinstance(outcome, RowFailure):
            logger.info("Single student import rejected: mis_id=%s, reason=%s", row.mis_id, outcome.reason)
            raise StudentImportRejectedError(outcome.reason)

        logger.info(
            "Single student import: mis_id=%s, student=%s, parent=%s",
            row.mis_id,
            outcome.student_action,
            outcome.parent_action,
        )
        return CreateStudentResponse(
            message=outcome.message,
            student_id=outcome.student_id,
            parent_id=outcome.parent_id,
            student_action=outcome.student_action,
            parent_action=outcome.parent_action,
            relationship_id=outcome.relationship_id,
        )

    async def get_student(self, admission_no: str) -> StudentLookupResponse:
        """Get a student by admission number.

        Raises:
            StudentNotFoundError: If no student has this admission number.
        """
        query = (
            select(Student, YearGroup.name, SchoolClass.name)
            .outerjoin(YearGroup, YearGroup.id == Student.current_year_group_id)
            .outerjoin(SchoolClass, SchoolClass.id == Student.class_id)
            .where(Student.admission_no == admission_no)
        )
        async with self.sessionmaker() as db:
            row = (await db.execute(query)).first()

        if row is None:
            raise StudentNotFoundError(admission_no)

        student, year_group_name, class_name = row
        record = StudentRecord.model_validate(student)
        return StudentLookupResponse(
            data=record.model_copy(update={"year_group_name": year_group_name, "class_name": class_name})
        )

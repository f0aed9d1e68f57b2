import asyncio
import re
from typing import List, Dict, Any, Optional, Callable

from core.imports.duplicate_resolver import DuplicateResolver, normalize_phone
from core.imports.exceptions import ImportPipelineError
from core.imports.models import ColumnMapping, ImportOutcome, RawTable
from core.interfaces.repositories import Contact, ContactRepository, UserRepository
from utils.logger import logger


ProgressCallback = Callable[[int, int], None]

REQUIRED_FIELDS = [
    ("firstName", "First name is required"),
    ("lastName", "Last name is required"),
    ("email", "Email is required"),
    ("phone", "Phone is required"),
]
MIN_PHONE_DIGITS = 10
PROTECTED_KEYS = {"id", "createdOn", "source"}


class ImportService:
    """Writes mapped rows into the contact store, merging duplicates.

    Rows are processed one at a time in input order. Validation problems
    are collected per row and never stop the run; a storage failure stops
    the run and raises ImportPipelineError carrying the partial counts.
    """

    EMAIL_REGEX = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

    def __init__(
        self,
        contact_repo: ContactRepository,
        user_repo: Optional[UserRepository] = None,
        resolver: Optional[DuplicateResolver] = None,
        row_delay: float = 0.0,
        progress_callback: Optional[ProgressCallback] = None
    ):
        self.contact_repo = contact_repo
        self.user_repo = user_repo
        self.resolver = resolver or DuplicateResolver(contact_repo)
        self.row_delay = row_delay
        self.progress_callback = progress_callback

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format"""
        if not email or not isinstance(email, str):
            return False
        return bool(re.match(ImportService.EMAIL_REGEX, email.strip()))

    @staticmethod
    def validate_phone(phone: str) -> bool:
        return len(normalize_phone(phone)) >= MIN_PHONE_DIGITS

    @staticmethod
    def build_contact_data(
        row: List[str],
        mappings: List[ColumnMapping],
        headers: Optional[List[str]] = None
    ) -> Dict[str, str]:
        """Copy trimmed cell values of resolved columns under their field names"""
        contact_data: Dict[str, str] = {}
        for mapping in mappings:
            if not mapping.is_resolved:
                continue

            index = mapping.column_index
            if index >= len(row) and headers and mapping.column_name in headers:
                index = headers.index(mapping.column_name)
            if index >= len(row):
                continue

            value = (row[index] or "").strip()
            if value:
                contact_data[mapping.suggested_field] = value
        return contact_data

    @staticmethod
    def validate_contact_data(contact_data: Dict[str, str]) -> List[str]:
        """All rule violations for one candidate record"""
        errors = [
            message for field_name, message in REQUIRED_FIELDS
            if not (contact_data.get(field_name) or "").strip()
        ]

        email = contact_data.get("email")
        if email and not ImportService.validate_email(email):
            errors.append("Invalid email format")

        phone = contact_data.get("phone")
        if phone and not ImportService.validate_phone(phone):
            errors.append("Invalid phone format")

        return errors

    @staticmethod
    def merge_contacts(existing: Contact, new_data: Dict[str, Any]) -> Dict[str, Any]:
        """Fields to overwrite on ``existing``: non-empty candidate values only"""
        updates = {}
        for key, value in new_data.items():
            if key in PROTECTED_KEYS or value is None or value == "":
                continue
            if existing.get_field(key) != value:
                updates[key] = value
        return updates

    async def resolve_agent(self, contact_data: Dict[str, str]) -> Dict[str, str]:
        """Replace an agent email with the matching user uid"""
        agent = contact_data.get("agentUid")
        if not agent or self.user_repo is None or not self.validate_email(agent):
            return contact_data

        user = await self.user_repo.get_by_email(agent.strip().lower())
        resolved = dict(contact_data)
        if user:
            resolved["agentUid"] = user.uid
        else:
            logger.warning(f"No user found for agent email {agent}; leaving contact unassigned")
            resolved.pop("agentUid")
        return resolved

    async def import_contact(self, contact_data: Dict[str, str]) -> str:
        """Create or merge one validated record; returns 'imported' or 'merged'"""
        contact_data = await self.resolve_agent(contact_data)
        duplicate = await self.resolver.resolve(contact_data)

        if duplicate.is_duplicate and duplicate.matched_contact is not None:
            existing = duplicate.matched_contact
            updates = self.merge_contacts(existing, contact_data)
            await self.contact_repo.update_contact(existing.id, updates)
            logger.info(
                f"Merged row into contact {existing.id} "
                f"(matched by {duplicate.matched_by}, confidence {duplicate.confidence})"
            )
            return "merged"

        await self.contact_repo.create_contact(contact_data, source="import")
        return "imported"

    async def run(
        self,
        table: RawTable,
        mappings: List[ColumnMapping],
        cancel_event: Optional[asyncio.Event] = None
    ) -> ImportOutcome:
        """Import every row of ``table`` using the resolved ``mappings``"""
        outcome = ImportOutcome()
        total_rows = len(table.rows)

        for i, row in enumerate(table.rows):
            if cancel_event is not None and cancel_event.is_set():
                outcome.cancelled = True
                logger.info(f"Import cancelled after {i} of {total_rows} rows")
                break

            row_number = i + 2  # header is row 1
            contact_data = self.build_contact_data(row, mappings, table.headers)

            validation_errors = self.validate_contact_data(contact_data)
            if validation_errors:
                outcome.errors += 1
                outcome.error_details.append(f"Row {row_number}: {', '.join(validation_errors)}")
            else:
                try:
                    result = await self.import_contact(contact_data)
                except Exception as e:
                    logger.error(f"Import stopped at row {row_number}: {str(e)}")
                    raise ImportPipelineError(
                        f"Failed to save row {row_number}: {str(e)}",
                        outcome=outcome.model_copy(deep=True),
                        row_number=row_number
                    ) from e

                if result == "merged":
                    outcome.merged += 1
                else:
                    outcome.imported += 1

            if self.progress_callback is not None:
                self.progress_callback(i + 1, total_rows)
            if self.row_delay > 0:
                await asyncio.sleep(self.row_delay)

        logger.info(
            f"Import finished: {outcome.imported} imported, "
            f"{outcome.merged} merged, {outcome.errors} errors"
        )
        return outcome

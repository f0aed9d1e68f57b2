"""
Shared fixtures: in-memory repositories standing in for MongoDB
"""
import itertools
from datetime import datetime
from typing import List, Optional, Dict, Any

import pytest

from core.imports.duplicate_resolver import normalize_phone
from core.interfaces.repositories import (
    CONTACT_FIELD_ATTRIBUTES,
    Contact,
    ContactField,
    ContactFieldRepository,
    ContactRepository,
    ImportSessionRecord,
    ImportSessionRepository,
    User,
    UserRepository,
)
from core.fields.exceptions import CoreFieldProtectedError


_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}{next(_ids)}"


class InMemoryContactRepository(ContactRepository):
    def __init__(self):
        self.contacts: Dict[str, Contact] = {}
        self.fail_on_create_call: Optional[int] = None
        self.create_calls = 0
        self.search_calls: List[str] = []

    def _apply(self, contact: Contact, data: Dict[str, Any]) -> None:
        for field_name, value in data.items():
            attribute = CONTACT_FIELD_ATTRIBUTES.get(field_name)
            if attribute:
                setattr(contact, attribute, value)
            else:
                contact.custom_fields[field_name] = value

    async def search_contacts(self, term: str) -> List[Contact]:
        self.search_calls.append(term)
        term = (term or "").strip().lower()
        if not term:
            return []
        results = []
        for contact in self.contacts.values():
            haystack = [
                (contact.first_name or "").lower(),
                (contact.last_name or "").lower(),
                (contact.email or "").lower(),
                (contact.phone or "").lower(),
                normalize_phone(contact.phone),
            ]
            if any(term in value for value in haystack if value):
                results.append(contact)
        return results

    async def create_contact(self, data: Dict[str, Any], source: str = "import") -> str:
        self.create_calls += 1
        if self.fail_on_create_call is not None and self.create_calls >= self.fail_on_create_call:
            raise ConnectionError("contact store unavailable")

        contact = Contact(
            id=_next_id("contact-"),
            first_name=None,
            last_name=None,
            phone=None,
            email=None,
            agent_uid=None,
            custom_fields={},
            source=source,
            created_on=datetime.utcnow()
        )
        self._apply(contact, data)
        self.contacts[contact.id] = contact
        return contact.id

    async def update_contact(self, contact_id: str, data: Dict[str, Any]) -> None:
        contact = self.contacts[contact_id]
        self._apply(contact, data)
        contact.updated_on = datetime.utcnow()

    async def create_contacts_batch(self, records: List[Dict[str, Any]], source: str = "import") -> List[str]:
        return [await self.create_contact(record, source=source) for record in records]

    async def get_by_id(self, contact_id: str) -> Optional[Contact]:
        return self.contacts.get(contact_id)

    async def get_contacts(self, skip: int = 0, limit: int = 50) -> List[Contact]:
        ordered = list(reversed(list(self.contacts.values())))
        return ordered[skip:skip + limit]

    async def count_contacts(self) -> int:
        return len(self.contacts)


class InMemoryFieldRepository(ContactFieldRepository):
    def __init__(self, fail_on_read: bool = False):
        self.fields: Dict[str, ContactField] = {}
        self.fail_on_read = fail_on_read

    async def get_fields(self) -> List[ContactField]:
        if self.fail_on_read:
            raise ConnectionError("field store unavailable")
        return list(self.fields.values())

    async def get_by_id(self, field_id: str) -> Optional[ContactField]:
        return self.fields.get(field_id)

    async def get_by_field_name(self, field_name: str) -> Optional[ContactField]:
        for field in self.fields.values():
            if field.field_name == field_name:
                return field
        return None

    async def create_field(self, label, field_name, type, core=False, required=False, options=None) -> ContactField:
        field = ContactField(
            id=_next_id("field-"),
            label=label,
            field_name=field_name,
            type=type,
            core=core,
            required=required,
            created_on=datetime.utcnow(),
            options=options
        )
        self.fields[field.id] = field
        return field

    async def update_field(self, field_id: str, updates: Dict[str, Any]) -> Optional[ContactField]:
        field = self.fields.get(field_id)
        if field is None:
            return None
        for key, value in updates.items():
            setattr(field, key, value)
        return field

    async def delete_field(self, field_id: str) -> bool:
        field = self.fields.get(field_id)
        if field is None:
            return False
        if field.core:
            raise CoreFieldProtectedError("Cannot delete core fields")
        del self.fields[field_id]
        return True


class InMemoryUserRepository(UserRepository):
    def __init__(self, users: Optional[List[User]] = None):
        self.users: List[User] = list(users or [])

    async def get_users(self) -> List[User]:
        return sorted(self.users, key=lambda user: user.name)

    async def get_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self.users:
            if user.email == email:
                return user
        return None

    async def create_user(self, name: str, email: str, role: str = "agent") -> User:
        existing = await self.get_by_email(email)
        if existing:
            return existing
        user = User(
            uid=_next_id("user-"),
            name=name,
            email=email.strip().lower(),
            role=role,
            active=True,
            created_on=datetime.utcnow()
        )
        self.users.append(user)
        return user


class InMemoryImportSessionRepository(ImportSessionRepository):
    def __init__(self):
        self.records: Dict[str, ImportSessionRecord] = {}

    async def create_session(self, file_name, file_size, total_rows, mapped_fields, created_by, status="processing"):
        record = ImportSessionRecord(
            id=_next_id("import-"),
            file_name=file_name,
            file_size=file_size,
            total_rows=total_rows,
            mapped_fields=mapped_fields,
            status=status,
            results={},
            created_by=created_by,
            created_on=datetime.utcnow()
        )
        self.records[record.id] = record
        return record

    async def update_session(self, session_id, status, results):
        record = self.records.get(session_id)
        if record is None:
            return None
        record.status = status
        record.results = results
        record.completed_on = datetime.utcnow()
        return record

    async def get_session(self, session_id):
        return self.records.get(session_id)

    async def get_sessions(self, skip=0, limit=50):
        ordered = list(reversed(list(self.records.values())))
        return ordered[skip:skip + limit]


def make_user(uid: str, email: str, name: str = "Agent") -> User:
    return User(uid=uid, name=name, email=email, role="agent", active=True, created_on=datetime.utcnow())


@pytest.fixture
def contact_repo():
    return InMemoryContactRepository()


@pytest.fixture
def field_repo():
    return InMemoryFieldRepository()


@pytest.fixture
def user_repo():
    return InMemoryUserRepository([
        make_user("u-sarah", "sarah.johnson@example.com", "Sarah Johnson"),
        make_user("u-mike", "mike.wilson@example.com", "Mike Wilson"),
    ])


@pytest.fixture
def import_session_repo():
    return InMemoryImportSessionRepository()


@pytest.fixture
def sample_csv() -> bytes:
    return (
        "First Name,Last Name,Email,Phone,Company\n"
        "John,Doe,john.doe@example.com,555-123-4567,Acme Inc\n"
        "Jane,Smith,jane.smith@example.com,555-987-6543,Globex\n"
    ).encode("utf-8")

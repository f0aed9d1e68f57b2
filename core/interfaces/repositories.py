from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from datetime import datetime


# Contact field names mapped to the attribute that stores them.
# Any other field name is a custom field kept in Contact.custom_fields.
CONTACT_FIELD_ATTRIBUTES: Dict[str, str] = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "email": "email",
    "agentUid": "agent_uid",
}

FIELD_TYPES = ("text", "number", "phone", "email", "datetime", "checkbox")


class Contact:
    """Contact domain model"""
    def __init__(
        self,
        id: str,
        first_name: Optional[str],
        last_name: Optional[str],
        phone: Optional[str],
        email: Optional[str],
        agent_uid: Optional[str],
        custom_fields: Dict[str, Any],
        source: str,
        created_on: datetime,
        updated_on: Optional[datetime] = None
    ):
        self.id = id
        self.first_name = first_name
        self.last_name = last_name
        self.phone = phone
        self.email = email
        self.agent_uid = agent_uid
        self.custom_fields = custom_fields
        self.source = source
        self.created_on = created_on
        self.updated_on = updated_on

    def get_field(self, field_name: str) -> Any:
        """Read a value by its field name (core or custom)"""
        attribute = CONTACT_FIELD_ATTRIBUTES.get(field_name)
        if attribute:
            return getattr(self, attribute)
        return self.custom_fields.get(field_name)

    def to_field_values(self) -> Dict[str, Any]:
        """Flatten the contact into a field-name keyed dict"""
        values = {
            field_name: getattr(self, attribute)
            for field_name, attribute in CONTACT_FIELD_ATTRIBUTES.items()
        }
        values.update(self.custom_fields)
        return values


class ContactField:
    """Field definition domain model"""
    def __init__(
        self,
        id: str,
        label: str,
        field_name: str,
        type: str,
        core: bool,
        required: bool,
        created_on: datetime,
        options: Optional[List[str]] = None
    ):
        self.id = id
        self.label = label
        self.field_name = field_name
        self.type = type
        self.core = core
        self.required = required
        self.created_on = created_on
        self.options = options or []


class User:
    """User domain model"""
    def __init__(
        self,
        uid: str,
        name: str,
        email: str,
        role: str,
        active: bool,
        created_on: datetime
    ):
        self.uid = uid
        self.name = name
        self.email = email
        self.role = role
        self.active = active
        self.created_on = created_on


class ImportSessionRecord:
    """Persisted summary of one import run"""
    def __init__(
        self,
        id: str,
        file_name: str,
        file_size: int,
        total_rows: int,
        mapped_fields: Dict[str, str],
        status: str,
        results: Dict[str, Any],
        created_by: str,
        created_on: datetime,
        completed_on: Optional[datetime] = None
    ):
        self.id = id
        self.file_name = file_name
        self.file_size = file_size
        self.total_rows = total_rows
        self.mapped_fields = mapped_fields
        self.status = status
        self.results = results
        self.created_by = created_by
        self.created_on = created_on
        self.completed_on = completed_on


class ContactRepository(ABC):
    """Abstract repository for contact operations.

    Write methods take field-name keyed dicts: core names from
    CONTACT_FIELD_ATTRIBUTES, everything else is a custom field.
    """

    @abstractmethod
    async def search_contacts(self, term: str) -> List[Contact]:
        """Substring match against names, email and phone"""
        pass

    @abstractmethod
    async def create_contact(self, data: Dict[str, Any], source: str = "import") -> str:
        """Create a contact and return its id"""
        pass

    @abstractmethod
    async def update_contact(self, contact_id: str, data: Dict[str, Any]) -> None:
        """Set the supplied fields on an existing contact"""
        pass

    @abstractmethod
    async def create_contacts_batch(
        self,
        records: List[Dict[str, Any]],
        source: str = "import"
    ) -> List[str]:
        """Create multiple contacts in one write"""
        pass

    @abstractmethod
    async def get_by_id(self, contact_id: str) -> Optional[Contact]:
        """Get contact by ID"""
        pass

    @abstractmethod
    async def get_contacts(self, skip: int = 0, limit: int = 50) -> List[Contact]:
        """Get contacts, newest first"""
        pass

    @abstractmethod
    async def count_contacts(self) -> int:
        """Count all contacts"""
        pass


class ContactFieldRepository(ABC):
    """Abstract repository for field definitions"""

    @abstractmethod
    async def get_fields(self) -> List[ContactField]:
        """Get all field definitions in creation order"""
        pass

    @abstractmethod
    async def get_by_id(self, field_id: str) -> Optional[ContactField]:
        """Get field definition by ID"""
        pass

    @abstractmethod
    async def get_by_field_name(self, field_name: str) -> Optional[ContactField]:
        """Get field definition by its internal name"""
        pass

    @abstractmethod
    async def create_field(
        self,
        label: str,
        field_name: str,
        type: str,
        core: bool = False,
        required: bool = False,
        options: Optional[List[str]] = None
    ) -> ContactField:
        """Create a field definition"""
        pass

    @abstractmethod
    async def update_field(self, field_id: str, updates: Dict[str, Any]) -> Optional[ContactField]:
        """Update a field definition"""
        pass

    @abstractmethod
    async def delete_field(self, field_id: str) -> bool:
        """Delete a field definition; core fields are protected"""
        pass


class UserRepository(ABC):
    """Abstract repository for user operations"""

    @abstractmethod
    async def get_users(self) -> List[User]:
        """Get all users ordered by name"""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email address"""
        pass

    @abstractmethod
    async def create_user(self, name: str, email: str, role: str = "agent") -> User:
        """Create a new user"""
        pass


class ImportSessionRepository(ABC):
    """Abstract repository for import run history"""

    @abstractmethod
    async def create_session(
        self,
        file_name: str,
        file_size: int,
        total_rows: int,
        mapped_fields: Dict[str, str],
        created_by: str,
        status: str = "processing"
    ) -> ImportSessionRecord:
        """Record the start of an import run"""
        pass

    @abstractmethod
    async def update_session(
        self,
        session_id: str,
        status: str,
        results: Dict[str, Any]
    ) -> Optional[ImportSessionRecord]:
        """Record the outcome of an import run"""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ImportSessionRecord]:
        """Get import run by ID"""
        pass

    @abstractmethod
    async def get_sessions(self, skip: int = 0, limit: int = 50) -> List[ImportSessionRecord]:
        """Get import runs, newest first"""
        pass

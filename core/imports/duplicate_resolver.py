import re
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Sequence

from core.interfaces.repositories import Contact, ContactRepository


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class DuplicateCheckResult:
    """Whether a candidate record matches a stored contact"""
    def __init__(
        self,
        is_duplicate: bool,
        confidence: int,
        matched_contact: Optional[Contact] = None,
        matched_by: Optional[str] = None
    ):
        self.is_duplicate = is_duplicate
        self.confidence = confidence
        self.matched_contact = matched_contact
        self.matched_by = matched_by


NO_DUPLICATE = DuplicateCheckResult(is_duplicate=False, confidence=0)


class DuplicateRule(ABC):
    """Looks up stored contacts sharing one identifier with the candidate"""
    name = "rule"
    confidence = 0

    @abstractmethod
    def search_term(self, candidate: Dict[str, Any]) -> str:
        """Narrowing search term, or '' when the candidate lacks the identifier"""
        pass

    @abstractmethod
    def matches(self, candidate: Dict[str, Any], contact: Contact) -> bool:
        """Exact comparison on the normalized identifier"""
        pass

    async def find(self, candidate: Dict[str, Any], contact_repo: ContactRepository) -> Optional[Contact]:
        term = self.search_term(candidate)
        if not term:
            return None
        for contact in await contact_repo.search_contacts(term):
            if self.matches(candidate, contact):
                return contact
        return None


class EmailMatchRule(DuplicateRule):
    name = "email"
    confidence = 100

    def search_term(self, candidate):
        return normalize_email(candidate.get("email"))

    def matches(self, candidate, contact):
        return normalize_email(contact.email) == normalize_email(candidate.get("email"))


class PhoneMatchRule(DuplicateRule):
    name = "phone"
    confidence = 95

    def search_term(self, candidate):
        return normalize_phone(candidate.get("phone"))

    def matches(self, candidate, contact):
        return normalize_phone(contact.phone) == normalize_phone(candidate.get("phone"))


class NameMatchRule(DuplicateRule):
    name = "name"
    confidence = 70

    def search_term(self, candidate):
        first_name = normalize_name(candidate.get("firstName"))
        last_name = normalize_name(candidate.get("lastName"))
        if not (first_name and last_name):
            return ""
        # Stored names are separate fields, so narrow on the last name alone
        return last_name

    def matches(self, candidate, contact):
        return (
            normalize_name(contact.first_name) == normalize_name(candidate.get("firstName"))
            and normalize_name(contact.last_name) == normalize_name(candidate.get("lastName"))
        )


DEFAULT_DUPLICATE_RULES: Sequence[DuplicateRule] = (
    EmailMatchRule(),
    PhoneMatchRule(),
    NameMatchRule(),
)


class DuplicateResolver:
    """Finds the stored contact a candidate duplicates.

    Rules run in order and the first hit wins: email (100), phone (95),
    then first+last name (70). Lookups are read-only; storage errors
    propagate to the caller.
    """

    def __init__(
        self,
        contact_repo: ContactRepository,
        rules: Sequence[DuplicateRule] = DEFAULT_DUPLICATE_RULES
    ):
        self.contact_repo = contact_repo
        self.rules: List[DuplicateRule] = list(rules)

    async def resolve(self, candidate: Dict[str, Any]) -> DuplicateCheckResult:
        for rule in self.rules:
            contact = await rule.find(candidate, self.contact_repo)
            if contact is not None:
                return DuplicateCheckResult(
                    is_duplicate=True,
                    confidence=rule.confidence,
                    matched_contact=contact,
                    matched_by=rule.name
                )
        return NO_DUPLICATE

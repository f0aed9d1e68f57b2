import asyncio

import pytest

from core.imports.duplicate_resolver import (
    DuplicateResolver,
    normalize_email,
    normalize_name,
    normalize_phone,
)


def _store(contact_repo, **data):
    return asyncio.run(contact_repo.create_contact(data))


def test_normalizers():
    assert normalize_email("  John.Doe@Example.COM ") == "john.doe@example.com"
    assert normalize_phone("+1 (555) 123-4567") == "15551234567"
    assert normalize_name(" Jane ") == "jane"
    assert normalize_email(None) == ""
    assert normalize_phone(None) == ""


def test_email_match_wins(contact_repo):
    contact_id = _store(contact_repo, firstName="John", lastName="Doe", email="john@example.com", phone="5551234567")
    resolver = DuplicateResolver(contact_repo)

    result = asyncio.run(resolver.resolve({"email": "JOHN@example.com", "phone": "0000000000"}))

    assert result.is_duplicate
    assert result.confidence == 100
    assert result.matched_by == "email"
    assert result.matched_contact.id == contact_id


def test_phone_match_ignores_formatting(contact_repo):
    contact_id = _store(contact_repo, firstName="John", lastName="Doe", email="john@example.com", phone="555-123-4567")
    resolver = DuplicateResolver(contact_repo)

    result = asyncio.run(resolver.resolve({"email": "other@example.com", "phone": "(555) 123 4567"}))

    assert result.is_duplicate
    assert result.confidence == 95
    assert result.matched_by == "phone"
    assert result.matched_contact.id == contact_id


def test_name_match_needs_both_names(contact_repo):
    _store(contact_repo, firstName="John", lastName="Doe", email="john@example.com", phone="5551234567")
    resolver = DuplicateResolver(contact_repo)

    hit = asyncio.run(resolver.resolve({
        "firstName": "john", "lastName": "DOE", "email": "new@example.com", "phone": "5559999999"
    }))
    miss = asyncio.run(resolver.resolve({
        "firstName": "Jane", "lastName": "Doe", "email": "jane@example.com", "phone": "5558888888"
    }))

    assert hit.is_duplicate
    assert hit.confidence == 70
    assert hit.matched_by == "name"
    assert not miss.is_duplicate
    assert miss.confidence == 0


def test_substring_search_hits_are_not_duplicates(contact_repo):
    _store(contact_repo, firstName="Ann", lastName="Lee", email="jo@example.com", phone="5551234567")
    resolver = DuplicateResolver(contact_repo)

    # "o@example.com" is a substring of the stored email but not equal to it
    result = asyncio.run(resolver.resolve({"email": "o@example.com"}))

    assert not result.is_duplicate


def test_empty_candidate_is_not_a_duplicate(contact_repo):
    _store(contact_repo, firstName="John", lastName="Doe", email="john@example.com", phone="5551234567")

    result = asyncio.run(DuplicateResolver(contact_repo).resolve({}))

    assert not result.is_duplicate
    assert contact_repo.search_calls == []


def test_storage_errors_propagate(contact_repo):
    async def broken_search(term):
        raise ConnectionError("search unavailable")

    contact_repo.search_contacts = broken_search

    with pytest.raises(ConnectionError):
        asyncio.run(DuplicateResolver(contact_repo).resolve({"email": "john@example.com"}))

import math
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Sequence, Tuple

from pydantic import BaseModel

from core.imports.models import ColumnMapping, CustomFieldConfig, NEW_CUSTOM_FIELD
from core.interfaces.repositories import (
    ContactField,
    ContactFieldRepository,
    User,
    UserRepository,
)
from utils.logger import logger


class FieldPattern:
    """Header keywords and header regexes that point at a core field"""
    def __init__(self, keywords: Sequence[str], patterns: Sequence[str], priority: int):
        self.keywords = tuple(keyword.lower() for keyword in keywords)
        self.patterns = tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)
        self.priority = priority


# Evaluated in this order; ties between fields go to the earlier entry
FIELD_PATTERNS: Dict[str, FieldPattern] = {
    "firstName": FieldPattern(
        keywords=["first", "given", "fname", "forename", "name"],
        patterns=[r"^first.?name$", r"^given.?name$", r"^f.?name$"],
        priority=90,
    ),
    "lastName": FieldPattern(
        keywords=["last", "family", "surname", "lname"],
        patterns=[r"^last.?name$", r"^family.?name$", r"^surname$", r"^l.?name$"],
        priority=90,
    ),
    "email": FieldPattern(
        keywords=["email", "e-mail", "mail", "address"],
        patterns=[r"^e.?mail$", r"^email.?address$", r"@"],
        priority=95,
    ),
    "phone": FieldPattern(
        keywords=["phone", "mobile", "cell", "telephone", "tel", "number"],
        patterns=[r"^phone$", r"^mobile$", r"^cell$", r"^tel$", r"^\d{3}[-.]?\d{3}[-.]?\d{4}$"],
        priority=85,
    ),
    "agentUid": FieldPattern(
        keywords=["agent", "rep", "representative", "assigned", "owner"],
        patterns=[r"^agent$", r"^rep$", r"^assigned$", r"^owner$"],
        priority=80,
    ),
}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_PATTERN = re.compile(
    r"^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}$|^\d{1,2}[-/.]\d{1,2}[-/.]\d{4}$"
)
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
BOOLEAN_PATTERN = re.compile(r"^(true|false|yes|no|y|n|1|0)$", re.IGNORECASE)
NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
PHONE_SEPARATORS = re.compile(r"[\s\-().]")
PHONE_DIGITS = re.compile(r"^\+?(\d+)$")

CORE_PATTERN_THRESHOLD = 50
AGENT_EMAIL_CONFIDENCE = 85
CUSTOM_FIELD_CONFIDENCE = 75
NEW_CUSTOM_FIELD_CONFIDENCE = 30
FALLBACK_CONFIDENCE = 60
SAMPLE_DATA_SIZE = 5
TYPE_SAMPLE_SIZE = 10


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(str(value).strip()))


def looks_like_phone(value: str, min_digits: int = 10) -> bool:
    """Digits (optionally +-prefixed) once separators are stripped, min_digits to 15 long"""
    match = PHONE_DIGITS.match(PHONE_SEPARATORS.sub("", str(value).strip()))
    if not match:
        return False
    return min_digits <= len(match.group(1)) <= 15


def detect_data_type(sample_data: Sequence[str]) -> str:
    """Infer a field type from sample values; all samples must agree"""
    samples = [str(sample).strip() for sample in sample_data[:TYPE_SAMPLE_SIZE]]
    if not samples:
        return "text"

    if all(EMAIL_PATTERN.match(sample) for sample in samples):
        return "email"
    if all(looks_like_phone(sample) for sample in samples):
        return "phone"
    if all(DATE_PATTERN.match(sample) for sample in samples):
        return "datetime"
    if all(NUMBER_PATTERN.match(sample) for sample in samples):
        return "number"
    if all(BOOLEAN_PATTERN.match(sample) for sample in samples):
        return "checkbox"
    return "text"


def format_field_label(header: str) -> str:
    """'lead_score' -> 'Lead Score'"""
    words = [word for word in re.split(r"[\s\-_]+", header.strip()) if word]
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def generate_field_name(header: str) -> str:
    """'Lead Score!' -> 'leadscore' (max 20 chars)"""
    cleaned = re.sub(r"[^a-z0-9\s]", "", header.lower())
    return "".join(cleaned.split())[:20]


def get_confidence_label(confidence: int) -> str:
    if confidence >= 90:
        return "High"
    if confidence >= 70:
        return "Good"
    if confidence >= 50:
        return "Medium"
    return "Low"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class FieldDetection(BaseModel):
    """What a single rule proposes for a column"""
    field: str
    confidence: int
    data_type: str
    is_custom_field: bool = False
    custom_field_config: Optional[CustomFieldConfig] = None
    rule: str = ""


class InferenceContext:
    """Read-only snapshot of field definitions and users for one session"""
    def __init__(self, fields: Optional[List[ContactField]] = None, users: Optional[List[User]] = None):
        self.fields = list(fields or [])
        self.users = list(users or [])
        self.user_emails = {user.email.lower().strip(): user for user in self.users if user.email}
        self.user_uids = {user.uid for user in self.users}

    @property
    def custom_fields(self) -> List[ContactField]:
        return [field for field in self.fields if not field.core]


def get_data_pattern_score(sample_data: Sequence[str], field_name: str, context: InferenceContext) -> float:
    """Percentage of samples shaped like the values of ``field_name``"""
    if not sample_data:
        return 0.0

    if field_name == "email":
        matching = [s for s in sample_data if is_valid_email(s)]
    elif field_name == "phone":
        matching = [s for s in sample_data if looks_like_phone(s, min_digits=7)]
    elif field_name in ("firstName", "lastName"):
        matching = [s for s in sample_data if NAME_PATTERN.match(s) and len(s.strip()) > 1]
    elif field_name == "agentUid":
        matching = [s for s in sample_data if is_valid_email(s) or s in context.user_uids]
    else:
        matching = []

    return len(matching) / len(sample_data) * 100


def calculate_confidence(
    header: str,
    sample_data: Sequence[str],
    field_name: str,
    context: InferenceContext
) -> int:
    """40% header similarity, 60% data shape, +20 for an exact name match"""
    normalized_header = header.strip().lower()
    confidence = 0.0

    config = FIELD_PATTERNS.get(field_name)
    if config and normalized_header:
        keyword_score = sum(
            len(keyword) / len(normalized_header) * 100
            for keyword in config.keywords
            if keyword in normalized_header
        )
        pattern_score = 80 if any(p.search(normalized_header) for p in config.patterns) else 0
        confidence += max(keyword_score, pattern_score) * 0.4

    confidence += get_data_pattern_score(sample_data, field_name, context) * 0.6

    if normalized_header == field_name.lower():
        confidence += 20

    return max(0, min(_round_half_up(confidence), 100))


class MappingRule(ABC):
    """One step of the column inference chain"""
    name = "rule"

    @abstractmethod
    def evaluate(
        self,
        header: str,
        sample_data: List[str],
        context: InferenceContext
    ) -> Optional[FieldDetection]:
        """Return a proposal, or None to fall through to the next rule"""
        pass


class CorePatternRule(MappingRule):
    """Keyword/regex match on the header, scored against the data"""
    name = "core_pattern"

    def __init__(self, threshold: int = CORE_PATTERN_THRESHOLD):
        self.threshold = threshold

    def evaluate(self, header, sample_data, context):
        normalized_header = header.strip().lower()
        best: Optional[Tuple[str, int]] = None

        for field_name, config in FIELD_PATTERNS.items():
            keyword_match = any(keyword in normalized_header for keyword in config.keywords)
            pattern_match = any(pattern.search(normalized_header) for pattern in config.patterns)
            if not (keyword_match or pattern_match):
                continue

            confidence = calculate_confidence(header, sample_data, field_name, context)
            if confidence > self.threshold and (best is None or confidence > best[1]):
                best = (field_name, confidence)

        if best is None:
            return None

        return FieldDetection(
            field=best[0],
            confidence=best[1],
            data_type=detect_data_type(sample_data),
            rule=self.name
        )


class AgentEmailRule(MappingRule):
    """Emails belonging to known users point at the assigned agent"""
    name = "agent_email"

    def evaluate(self, header, sample_data, context):
        emails = [sample.strip().lower() for sample in sample_data if is_valid_email(sample)]
        if not any(email in context.user_emails for email in emails):
            return None

        return FieldDetection(
            field="agentUid",
            confidence=AGENT_EMAIL_CONFIDENCE,
            data_type="email",
            rule=self.name
        )


class CustomFieldRule(MappingRule):
    """Header overlaps the label of an existing custom field"""
    name = "custom_field"

    def evaluate(self, header, sample_data, context):
        normalized_header = header.strip().lower()
        if not normalized_header:
            return None

        for field in context.custom_fields:
            label = field.label.strip().lower()
            if not label:
                continue
            if normalized_header in label or label in normalized_header:
                return FieldDetection(
                    field=field.field_name,
                    confidence=CUSTOM_FIELD_CONFIDENCE,
                    data_type=field.type,
                    rule=self.name
                )
        return None


class NewCustomFieldRule(MappingRule):
    """Always matches: propose creating a field for the column"""
    name = "new_custom_field"

    def evaluate(self, header, sample_data, context):
        data_type = detect_data_type(sample_data)
        return FieldDetection(
            field=NEW_CUSTOM_FIELD,
            confidence=NEW_CUSTOM_FIELD_CONFIDENCE,
            data_type=data_type,
            is_custom_field=True,
            custom_field_config=CustomFieldConfig(
                label=format_field_label(header) or header,
                field_name=generate_field_name(header) or "customfield",
                type=data_type,
                core=False
            ),
            rule=self.name
        )


DEFAULT_RULES: Tuple[MappingRule, ...] = (
    CorePatternRule(),
    AgentEmailRule(),
    CustomFieldRule(),
    NewCustomFieldRule(),
)


class FieldMappingService:
    """Proposes a target field for every column of an uploaded table"""

    def __init__(
        self,
        fields: Optional[List[ContactField]] = None,
        users: Optional[List[User]] = None,
        rules: Sequence[MappingRule] = DEFAULT_RULES
    ):
        self.context = InferenceContext(fields, users)
        self.rules = tuple(rules)

    def analyze_file_headers(
        self,
        headers: List[str],
        sample_rows: List[List[str]]
    ) -> List[ColumnMapping]:
        """Build one mapping per column, highest confidence first"""
        results = []
        for index, header in enumerate(headers):
            column_data = _column_samples(sample_rows, index)
            detection = self.detect_field(header, column_data)
            results.append(ColumnMapping(
                column_name=header,
                column_index=index,
                suggested_field=detection.field,
                confidence=detection.confidence,
                data_type=detection.data_type,
                sample_data=column_data[:SAMPLE_DATA_SIZE],
                is_custom_field=detection.is_custom_field,
                custom_field_config=detection.custom_field_config
            ))

        return sorted(results, key=lambda mapping: mapping.confidence, reverse=True)

    def detect_field(self, header: str, sample_data: List[str]) -> FieldDetection:
        """Run the rule chain; the first rule with a proposal wins"""
        for rule in self.rules:
            detection = rule.evaluate(header, sample_data, self.context)
            if detection is not None:
                return detection
        return NewCustomFieldRule().evaluate(header, sample_data, self.context)

    def map_agent_email(self, email: str) -> Optional[str]:
        """Resolve an agent email to a user uid"""
        user = self.context.user_emails.get(email.strip().lower())
        return user.uid if user else None


def _column_samples(sample_rows: List[List[str]], index: int) -> List[str]:
    values = []
    for row in sample_rows:
        if index < len(row) and row[index] is not None:
            value = str(row[index]).strip()
            if value:
                values.append(value)
    return values


def fallback_field_mapping(header: str) -> str:
    """Keyword-only guess used when field/user data is unavailable"""
    normalized = header.lower()
    if "first" in normalized or "given" in normalized:
        return "firstName"
    if "last" in normalized or "family" in normalized or "surname" in normalized:
        return "lastName"
    if "email" in normalized or "mail" in normalized:
        return "email"
    if "phone" in normalized or "mobile" in normalized or "cell" in normalized:
        return "phone"
    return NEW_CUSTOM_FIELD


def build_fallback_mappings(headers: List[str], sample_rows: List[List[str]]) -> List[ColumnMapping]:
    """Simplified mappings at a fixed confidence, in column order"""
    mappings = []
    for index, header in enumerate(headers):
        column_data = _column_samples(sample_rows[:SAMPLE_DATA_SIZE], index)
        data_type = detect_data_type(column_data)
        suggested_field = fallback_field_mapping(header)
        is_custom_field = suggested_field == NEW_CUSTOM_FIELD

        mappings.append(ColumnMapping(
            column_name=header,
            column_index=index,
            suggested_field=suggested_field,
            confidence=FALLBACK_CONFIDENCE,
            data_type=data_type,
            sample_data=column_data[:SAMPLE_DATA_SIZE],
            is_custom_field=is_custom_field,
            custom_field_config=CustomFieldConfig(
                label=header,
                field_name=re.sub(r"[^a-z0-9]", "_", header.lower()),
                type=data_type
            ) if is_custom_field else None
        ))
    return mappings


async def analyze_with_fallback(
    headers: List[str],
    sample_rows: List[List[str]],
    field_repo: ContactFieldRepository,
    user_repo: UserRepository
) -> Tuple[List[ColumnMapping], InferenceContext, bool]:
    """Full inference when fields and users load, keyword fallback otherwise.

    Returns the mappings, the snapshot they were computed against and
    whether the fallback was used. Never raises on a loading failure.
    """
    try:
        fields = await field_repo.get_fields()
        users = await user_repo.get_users()
    except Exception as e:
        logger.warning(f"Field mapping data unavailable, using keyword fallback: {str(e)}")
        return build_fallback_mappings(headers, sample_rows), InferenceContext(), True

    service = FieldMappingService(fields, users)
    mappings = service.analyze_file_headers(headers, sample_rows)
    logger.info(f"Analyzed {len(headers)} columns against {len(fields)} fields and {len(users)} users")
    return mappings, service.context, False

"""Customer contact fields: syntactic validation and sanitizing for hand-off"""

import re
from typing import Dict, Optional

import attrs

from src.platform.exception.exceptions import ValidationError


_NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_NON_DIGIT = re.compile(r'\D')


def validate_full_name(name: str) -> Optional[str]:
    trimmed = (name or '').strip()
    if not trimmed:
        return 'Name is required'
    if len(trimmed) < 2:
        return 'Name must be at least 2 characters'
    if not _NAME_PATTERN.match(trimmed):
        return 'Name can only contain letters, spaces, hyphens, and apostrophes'
    words = trimmed.split()
    if len(words) < 2:
        return 'Please enter both first and last name'
    if any(len(word) < 2 for word in words):
        return 'Each name must be at least 2 characters'
    return None


def validate_email(email: str) -> Optional[str]:
    trimmed = (email or '').strip()
    if not trimmed:
        return 'Email is required'
    if not _EMAIL_PATTERN.match(trimmed):
        return 'Please enter a valid email address'
    local, domain = trimmed.split('@')
    if not 1 <= len(local) <= 64:
        return 'Email local part must be 1-64 characters'
    if not 1 <= len(domain) <= 255:
        return 'Email domain must be 1-255 characters'
    return None


def validate_phone(phone: str) -> Optional[str]:
    if not (phone or '').strip():
        return 'Phone number is required'
    digits = _NON_DIGIT.sub('', phone)
    if len(digits) < 10:
        return 'Phone number must have at least 10 digits'
    if len(digits) > 15:
        return 'Phone number is too long'
    return None


def validate_party_size(count: int, *, min_players: int = 1, max_players: int) -> Optional[str]:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        return 'Player count must be a positive number'
    if count < min_players:
        return f'Minimum {min_players} player{"s" if min_players > 1 else ""} required'
    if count > max_players:
        return f'Maximum {max_players} player{"s" if max_players > 1 else ""} allowed'
    return None


def sanitize_name(name: str) -> str:
    return ' '.join(word[:1].upper() + word[1:].lower() for word in name.split())


def sanitize_email(email: str) -> str:
    return email.strip().lower()


def sanitize_phone(phone: str, country_code: str = '1') -> str:
    """E.164: keep an explicit leading country code, otherwise prefix the default"""
    digits = _NON_DIGIT.sub('', phone)
    if digits.startswith(country_code) and len(digits) == 10 + len(country_code):
        return f'+{digits}'
    return f'+{country_code}{digits}'


@attrs.define(frozen=True)
class CustomerContact:
    full_name: str
    email: str
    phone: str

    def field_errors(self) -> Dict[str, str]:
        errors = {
            'full_name': validate_full_name(self.full_name),
            'email': validate_email(self.email),
            'phone': validate_phone(self.phone),
        }
        return {field: error for field, error in errors.items() if error}

    @property
    def is_valid(self) -> bool:
        return not self.field_errors()

    def ensure_valid(self) -> None:
        """
        Raises:
            ValidationError: one or more fields fail syntactic validation
        """
        if errors := self.field_errors():
            raise ValidationError('Please correct the highlighted fields', errors)

    def sanitized(self, *, country_code: str = '1') -> 'SanitizedContact':
        name = sanitize_name(self.full_name)
        first, _, last = name.partition(' ')
        return SanitizedContact(
            first_name=first,
            last_name=last,
            email=sanitize_email(self.email),
            phone=sanitize_phone(self.phone, country_code),
        )


@attrs.define(frozen=True)
class SanitizedContact:
    first_name: str
    last_name: str
    email: str
    phone: str

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()

"""
Contact data model for mailing-list reconciliation.

Provides:
- Contact: a subscriber as held by the remote list service
- AuthoritativeRow: an expected subscriber produced by the source-of-truth
- ContactStatus: the remote subscription states
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from octopus_sync.utils.normalization import normalize_email

logger = logging.getLogger(__name__)

# Custom field tags used by the remote list for names
FIRST_NAME_FIELD = "FirstName"
LAST_NAME_FIELD = "LastName"


class ContactStatus(str, Enum):
    """Subscription state of a contact on a remote list."""

    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    PENDING = "pending"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ContactStatus":
        """Parse a remote status string; unknown values map to PENDING."""
        try:
            return cls((value or "").lower())
        except ValueError:
            logger.warning(f"Unknown contact status {value!r}, treating as pending")
            return cls.PENDING


@dataclass
class Contact:
    """
    A subscriber on a remote list.

    Attributes:
        email_address: Email as stored by the remote service
        status: Subscription state
        remote_id: Identifier assigned by the remote service. Unknown ("")
                   until the contact has been fetched; required for deletes.
        attributes: Custom field values (e.g. FirstName, LastName)

    Usage:
        contact = Contact.from_api_response(item)
        snapshot[contact.key] = contact

        payload = Contact("a@b.com", attributes={"FirstName": "Ada"}).to_api_payload()
    """

    email_address: str
    status: ContactStatus = ContactStatus.SUBSCRIBED
    remote_id: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Normalized email used as the reconciliation identity."""
        return normalize_email(self.email_address)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Contact":
        """
        Create a Contact from an item of the remote contacts listing.

        Example item::

            {
                "id": "00000000-0000-0000-0000-000000000000",
                "email_address": "ada@example.com",
                "fields": {"FirstName": "Ada", "LastName": "Lovelace"},
                "status": "subscribed"
            }
        """
        return cls(
            email_address=data.get("email_address") or "",
            status=ContactStatus.parse(data.get("status")),
            remote_id=data.get("id") or "",
            attributes=dict(data.get("fields") or {}),
        )

    def to_api_payload(self) -> dict[str, Any]:
        """Build the body for an upsert request."""
        payload: dict[str, Any] = {
            "email_address": self.email_address,
            "status": self.status.value,
        }
        if self.attributes:
            payload["fields"] = dict(self.attributes)
        return payload


@dataclass(frozen=True)
class AuthoritativeRow:
    """
    One expected subscriber from the relational system of record.

    Attributes:
        email: Email address as stored in the source
        attributes: Custom field values to carry to the remote list
    """

    email: Any
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_db_row(
        cls,
        email: Any,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> "AuthoritativeRow":
        """Build a row from (email, first_name, last_name), dropping empty names."""
        attributes: dict[str, Any] = {}
        if first_name:
            attributes[FIRST_NAME_FIELD] = first_name
        if last_name:
            attributes[LAST_NAME_FIELD] = last_name
        return cls(email=email, attributes=attributes)

    def to_contact(self) -> Contact:
        """Convert to a Contact to be upserted as subscribed."""
        email = self.email.strip() if isinstance(self.email, str) else self.email
        return Contact(
            email_address=email,
            status=ContactStatus.SUBSCRIBED,
            attributes=dict(self.attributes),
        )

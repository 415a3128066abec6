"""
EmailOctopus list API wrapper for subscriber reconciliation.

Provides a thin interface to the remote contact-list API for:
- Reading list subscriber counts
- Listing contacts page by page with cursor pagination
- Upserting a single contact as subscribed
- Deleting a single contact by remote id
- Bulk status changes (legacy unsubscribe path)

Each operation checks the exact success status code the remote service
documents for it: 200 for GET and PUT, 204 for DELETE.
"""

import logging
from typing import Any, Optional

import requests

from octopus_sync import __version__
from octopus_sync.sync.contact import Contact, ContactStatus
from octopus_sync.utils.retry import RetryPolicy

DEFAULT_BASE_URL = "https://api.emailoctopus.com"

# Maximum contacts per page when listing (API max is 100)
DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100

# HTTP timeout for every request
DEFAULT_TIMEOUT = 30.0  # seconds

# Read retry defaults (mutations are retried by the batch executor)
DEFAULT_READ_ATTEMPTS = 3
DEFAULT_READ_WAIT = 2.0  # seconds

# Expected success codes per operation type
STATUS_OK = 200
STATUS_NO_CONTENT = 204

logger = logging.getLogger(__name__)


class OctopusAPIError(Exception):
    """Base class for remote list API failures."""

    pass


class TransportError(OctopusAPIError):
    """Raised when a request fails at the network or connection level."""

    pass


class RemoteAPIError(OctopusAPIError):
    """Raised when the remote service answers with an unexpected status code."""

    def __init__(self, status_code: int, body: str, operation: str = ""):
        self.status_code = status_code
        self.body = body
        self.operation = operation
        prefix = f"{operation} failed" if operation else "Request failed"
        super().__init__(f"{prefix} with status {status_code}: {body[:500]}")


def is_retryable(error: Exception) -> bool:
    """Every remote failure counts against the same fixed retry budget."""
    return isinstance(error, (TransportError, RemoteAPIError))


class OctopusAPI:
    """
    EmailOctopus contact-list API client.

    Attributes:
        base_url: API root, e.g. https://api.emailoctopus.com
        timeout: Per-request timeout in seconds
        read_policy: Retry policy applied to read operations
        session: requests.Session carrying the auth headers

    Usage:
        with OctopusAPI(api_key) as api:
            counts = api.fetch_list_counts(list_id)

            contacts, cursor = api.fetch_contacts_page(list_id)
            while cursor:
                contacts, cursor = api.fetch_contacts_page(list_id, cursor=cursor)

            api.upsert_contact(list_id, Contact("ada@example.com"))
            api.delete_contact(list_id, remote_id)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        read_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API client.

        Args:
            api_key: EmailOctopus API key, sent as a bearer token
            base_url: API root URL
            timeout: Per-request timeout in seconds (default 30)
            read_policy: Retry policy for reads (default 3 attempts, 2s apart)
            session: Optional pre-built session (mainly for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.read_policy = read_policy or RetryPolicy(
            max_attempts=DEFAULT_READ_ATTEMPTS,
            wait=DEFAULT_READ_WAIT,
            retryable=is_retryable,
        )
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": self._auth_header(api_key),
                "Content-Type": "application/json",
                "User-Agent": f"octopus-sync/{__version__}",
            }
        )

    @staticmethod
    def _auth_header(api_key: str) -> str:
        return f"Bearer {api_key}"

    def _list_url(self, list_id: str, path: str = "") -> str:
        return f"{self.base_url}/lists/{list_id}{path}"

    def _request(
        self,
        method: str,
        url: str,
        expected_status: int,
        operation: str,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send one request and check the exact expected status code.

        Raises:
            TransportError: On connection failures and timeouts
            RemoteAPIError: When the status code differs from expected_status
        """
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{operation} request failed: {e}") from e

        if response.status_code != expected_status:
            raise RemoteAPIError(response.status_code, response.text, operation)

        return response

    def _get_json(self, url: str, operation: str, **kwargs: Any) -> dict[str, Any]:
        response = self._request("GET", url, STATUS_OK, operation, **kwargs)
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteAPIError(
                response.status_code, f"invalid JSON: {e}", operation
            ) from e
        if not isinstance(data, dict):
            raise RemoteAPIError(
                response.status_code, f"unexpected payload: {data!r}", operation
            )
        return data

    # =========================================================================
    # Reads
    # =========================================================================

    def fetch_list(self, list_id: str) -> dict[str, Any]:
        """
        Fetch the list document (name, counts, ...).

        Raises:
            TransportError, RemoteAPIError
        """
        return self.read_policy.call(
            lambda: self._get_json(self._list_url(list_id), "fetch_list"),
            f"fetch_list({list_id})",
        )

    def fetch_list_counts(self, list_id: str) -> dict[str, int]:
        """
        Get pending/subscribed/unsubscribed counts for a list.

        Returns:
            Dict with keys "pending", "subscribed" and "unsubscribed"

        Raises:
            TransportError, RemoteAPIError
        """
        counts = self.fetch_list(list_id).get("counts") or {}
        # Older payloads wrapped the counts in a one-element array
        if isinstance(counts, list):
            counts = counts[0] if counts else {}

        return {
            status.value: int(counts.get(status.value) or 0)
            for status in (
                ContactStatus.PENDING,
                ContactStatus.SUBSCRIBED,
                ContactStatus.UNSUBSCRIBED,
            )
        }

    def fetch_contacts_page(
        self,
        list_id: str,
        status: ContactStatus | str = ContactStatus.SUBSCRIBED,
        page_size: int = DEFAULT_PAGE_SIZE,
        cursor: str = "",
    ) -> tuple[list[Contact], str]:
        """
        Fetch one page of contacts.

        Args:
            list_id: Remote list identifier
            status: Only return contacts in this state
            page_size: Contacts per page (capped at 100)
            cursor: starting_after cursor from the previous page, "" for the first

        Returns:
            Tuple of (contacts on this page, next cursor or "" when exhausted)

        Raises:
            TransportError, RemoteAPIError
        """
        params: dict[str, Any] = {
            "status": ContactStatus(status).value,
            "limit": min(page_size, MAX_PAGE_SIZE),
        }
        if cursor:
            params["starting_after"] = cursor

        data = self.read_policy.call(
            lambda: self._get_json(
                self._list_url(list_id, "/contacts"),
                "fetch_contacts_page",
                params=params,
            ),
            f"fetch_contacts_page({list_id})",
        )

        contacts = [Contact.from_api_response(item) for item in data.get("data") or []]
        next_page = (data.get("paging") or {}).get("next") or {}
        next_cursor = next_page.get("starting_after") or ""

        logger.debug(
            f"Fetched {len(contacts)} contacts from list {list_id} "
            f"(cursor={cursor or '-'}, next={next_cursor or '-'})"
        )
        return contacts, next_cursor

    # =========================================================================
    # Mutations
    # =========================================================================

    def upsert_contact(self, list_id: str, contact: Contact) -> None:
        """
        Create or update a contact as subscribed.

        The status is always sent as "subscribed", whatever the caller set.

        Raises:
            TransportError, RemoteAPIError (any status other than 200)
        """
        payload = contact.to_api_payload()
        payload["status"] = ContactStatus.SUBSCRIBED.value

        self._request(
            "PUT",
            self._list_url(list_id, "/contacts"),
            STATUS_OK,
            "upsert_contact",
            json=payload,
        )
        logger.debug(f"Upserted {contact.email_address} on list {list_id}")

    def delete_contact(self, list_id: str, remote_id: str) -> None:
        """
        Delete a contact by its remote id.

        Raises:
            ValueError: If remote_id is empty
            TransportError, RemoteAPIError (any status other than 204)
        """
        if not remote_id:
            raise ValueError("remote_id is required to delete a contact")

        self._request(
            "DELETE",
            self._list_url(list_id, f"/contacts/{remote_id}"),
            STATUS_NO_CONTENT,
            "delete_contact",
        )
        logger.debug(f"Deleted contact {remote_id} from list {list_id}")

    def batch_update_status(
        self,
        list_id: str,
        contacts: list[Contact],
        status: ContactStatus | str,
    ) -> int:
        """
        Change the status of many contacts in one request.

        Args:
            list_id: Remote list identifier
            contacts: Contacts with remote ids
            status: New status for every contact

        Returns:
            Number of contacts sent

        Raises:
            TransportError, RemoteAPIError (any status other than 200)
        """
        items = [
            {"id": c.remote_id, "status": ContactStatus(status).value}
            for c in contacts
            if c.remote_id
        ]
        if not items:
            return 0

        self._request(
            "PUT",
            self._list_url(list_id, "/contacts/batch"),
            STATUS_OK,
            "batch_update_status",
            json={"contacts": items},
        )
        logger.debug(f"Set {len(items)} contacts to {status} on list {list_id}")
        return len(items)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "OctopusAPI":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"OctopusAPI(base_url={self.base_url!r})"

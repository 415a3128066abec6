"""
Remote snapshot building.

Materializes the complete set of subscribed contacts of one remote list,
keyed by normalized email, by walking the cursor-paginated listing.
"""

import logging

from octopus_sync.api.octopus_api import DEFAULT_PAGE_SIZE, OctopusAPI, OctopusAPIError
from octopus_sync.sync.contact import Contact, ContactStatus

# Snapshot of one list: normalized email -> Contact
RemoteSnapshot = dict[str, Contact]

logger = logging.getLogger(__name__)


class SnapshotIncompleteError(Exception):
    """Raised when the remote snapshot could not be read completely."""

    def __init__(self, list_id: str, pages_fetched: int, cause: Exception):
        self.list_id = list_id
        self.pages_fetched = pages_fetched
        self.cause = cause
        super().__init__(
            f"Snapshot of list {list_id} incomplete after {pages_fetched} "
            f"page(s): {cause}"
        )


class SnapshotFetcher:
    """
    Build a RemoteSnapshot for a list.

    The subscribed count reported by the list only bounds the loop; the
    cursor running out is what normally ends it. Any failed request aborts
    the whole snapshot, a partial one is never returned.

    Usage:
        fetcher = SnapshotFetcher(api)
        snapshot = fetcher.build_snapshot(list_id)
    """

    def __init__(self, client: OctopusAPI, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    def build_snapshot(self, list_id: str) -> RemoteSnapshot:
        """
        Fetch every subscribed contact of a list.

        Args:
            list_id: Remote list identifier

        Returns:
            Mapping of normalized email to Contact

        Raises:
            SnapshotIncompleteError: If the counts or any page could not be fetched
        """
        pages = 0
        try:
            counts = self.client.fetch_list_counts(list_id)
        except OctopusAPIError as e:
            raise SnapshotIncompleteError(list_id, pages, e) from e

        expected = counts.get(ContactStatus.SUBSCRIBED.value, 0)
        logger.debug(f"List {list_id} reports {expected} subscribed contacts")

        snapshot: RemoteSnapshot = {}
        cursor = ""
        while True:
            try:
                contacts, cursor = self.client.fetch_contacts_page(
                    list_id,
                    status=ContactStatus.SUBSCRIBED,
                    page_size=self.page_size,
                    cursor=cursor,
                )
            except OctopusAPIError as e:
                raise SnapshotIncompleteError(list_id, pages, e) from e
            pages += 1

            for contact in contacts:
                key = contact.key
                if not key:
                    logger.warning(
                        f"Skipping remote contact {contact.remote_id or '?'} "
                        f"without an email address"
                    )
                    continue
                if key in snapshot:
                    logger.debug(f"Duplicate remote contact {key}, keeping latest")
                snapshot[key] = contact

            if not cursor or not contacts or len(snapshot) >= expected:
                break

        logger.info(
            f"Snapshot of list {list_id}: {len(snapshot)} subscribed contacts "
            f"in {pages} page(s)"
        )
        return snapshot

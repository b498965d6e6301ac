import logging
from collections import deque
from typing import List, Optional, Tuple

from transferguard.exceptions import CrossTenantAccessError, RecipientNotFoundError
from transferguard.hierarchy.rules import DEFAULT_RULE_TABLE, RuleTable
from transferguard.models.recipient import Recipient
from transferguard.runtime.cancellation import CancellationToken, check_cancelled
from transferguard.storage import RecipientStore

logger = logging.getLogger("transferguard.hierarchy")

# Hard stop for ancestor walks over corrupt data.
MAX_ANCESTOR_ITERATIONS = 15


class GraphTraversal:
    """
    Walks the per-organization recipient forest through the store.

    Nodes are loaded lazily by id; every lookup is scoped to the
    organization being traversed.
    """

    def __init__(self, store: RecipientStore, rules: RuleTable = DEFAULT_RULE_TABLE):
        self.store = store
        self.rules = rules

    def _load(self, recipient_id: str, organization_id: str,
              cancellation: Optional[CancellationToken]) -> Optional[Recipient]:
        check_cancelled(cancellation)
        recipient = self.store.get_recipient_for_organization(recipient_id, organization_id)
        if recipient is not None and recipient.organization_id != organization_id:
            logger.error(
                f"Tenant boundary violation while traversing recipient {recipient_id} "
                f"for organization {organization_id}"
            )
            raise CrossTenantAccessError(
                f"Recipient {recipient_id} does not belong to organization {organization_id}"
            )
        return recipient

    def get_ancestor_chain(
        self,
        recipient_id: str,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[Recipient]:
        """
        Ancestors ordered from the immediate parent to the root.
        """
        ancestors: List[Recipient] = []
        seen = {recipient_id}

        current = self._load(recipient_id, organization_id, cancellation)
        while current is not None and current.parent_recipient_id:
            if len(ancestors) >= MAX_ANCESTOR_ITERATIONS:
                logger.warning(
                    f"Ancestor walk for recipient {recipient_id} stopped after "
                    f"{MAX_ANCESTOR_ITERATIONS} hops"
                )
                break
            if current.parent_recipient_id in seen:
                logger.warning(
                    f"Cycle detected in stored hierarchy at recipient {current.parent_recipient_id}"
                )
                break

            parent = self._load(current.parent_recipient_id, organization_id, cancellation)
            if parent is None:
                # Dangling or out-of-tenant parent
                break

            ancestors.append(parent)
            seen.add(parent.id)
            current = parent

        return ancestors

    def calculate_hierarchy_depth(
        self,
        recipient_id: str,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> int:
        """
        Hop count to the root, bounded by max_depth(type) + 1 hops.

        A result above the type's max depth means the stored chain is
        already too deep; the walk does not continue past that point.
        """
        recipient = self._load(recipient_id, organization_id, cancellation)
        if recipient is None:
            raise RecipientNotFoundError(recipient_id, organization_id)

        bound = self.rules.max_depth(recipient.type) + 1
        depth = 0
        current = recipient
        while current.parent_recipient_id and depth < bound:
            parent = self._load(current.parent_recipient_id, organization_id, cancellation)
            if parent is None:
                break
            depth += 1
            current = parent

        return depth

    def check_circular_reference(
        self,
        recipient_id: str,
        candidate_parent_id: str,
        organization_id: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> bool:
        if recipient_id == candidate_parent_id:
            return True

        ancestors = self.get_ancestor_chain(candidate_parent_id, organization_id, cancellation)
        return any(a.id == recipient_id for a in ancestors)

    def get_direct_children(self, recipient_id: str, organization_id: str) -> List[Recipient]:
        return self.store.list_children(recipient_id, organization_id)

    def get_descendant_tree(
        self,
        recipient_id: str,
        organization_id: str,
        max_depth: int = 10,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[Tuple[Recipient, int]]:
        """
        Breadth-first descendants with depth (1 = direct child).
        """
        result: List[Tuple[Recipient, int]] = []
        visited = {recipient_id}
        queue = deque([(recipient_id, 0)])

        while queue:
            node_id, depth = queue.popleft()
            if depth >= max_depth:
                continue
            check_cancelled(cancellation)
            for child in self.store.list_children(node_id, organization_id):
                if child.organization_id != organization_id:
                    raise CrossTenantAccessError(
                        f"Recipient {child.id} does not belong to organization {organization_id}"
                    )
                if child.id in visited:
                    continue
                visited.add(child.id)
                result.append((child, depth + 1))
                queue.append((child.id, depth + 1))

        return result

import pytest

from reference_data import ORG_ID
from transferguard.exceptions import HierarchyValidationError, RecipientNotFoundError
from transferguard.hierarchy.traversal import GraphTraversal
from transferguard.hierarchy.write_guard import RecipientWriteGuard
from transferguard.models.recipient import HierarchyType, Recipient, RecipientType


@pytest.fixture
def guard(store):
    return RecipientWriteGuard(store)


def _recipient(recipient_id, recipient_type, parent=None, external="ext-1"):
    return Recipient(
        id=recipient_id,
        organization_id=ORG_ID,
        name=recipient_id,
        type=recipient_type,
        parent_recipient_id=parent,
        external_organization_id=external,
    )


def test_create_stamps_hierarchy_type_and_reports_agreement_warnings(guard, store):
    processor, warnings = guard.create_recipient(_recipient("A", RecipientType.PROCESSOR))
    sub, sub_warnings = guard.create_recipient(_recipient("B", RecipientType.SUB_PROCESSOR, parent="A"))

    assert processor.hierarchy_type is None
    assert sub.hierarchy_type == HierarchyType.PROCESSOR_CHAIN
    assert store.get_recipient("B") == sub
    assert any("missing required DPA" in w for w in warnings)
    assert sub_warnings == []


def test_create_rejects_missing_external_org(guard, store):
    with pytest.raises(HierarchyValidationError) as exc_info:
        guard.create_recipient(_recipient("A", RecipientType.PROCESSOR, external=None))

    assert "requires an external organization" in exc_info.value.result.errors[0]
    assert store.get_recipient("A") is None


def test_create_rejects_cross_tenant_external_org(guard, store):
    with pytest.raises(HierarchyValidationError, match="different organization"):
        guard.create_recipient(_recipient("A", RecipientType.PROCESSOR, external="ext-2"))


def test_update_refuses_to_introduce_cycle(guard, store):
    guard.create_recipient(_recipient("A", RecipientType.SUB_PROCESSOR, external="ext-1"))
    guard.create_recipient(_recipient("B", RecipientType.SUB_PROCESSOR, parent="A"))
    guard.create_recipient(_recipient("C", RecipientType.SUB_PROCESSOR, parent="B"))

    with pytest.raises(HierarchyValidationError, match="circular reference"):
        guard.update_recipient(_recipient("A", RecipientType.SUB_PROCESSOR, parent="C"))

    assert store.get_recipient("A").parent_recipient_id is None


def test_validated_writes_keep_forest_acyclic(guard, store):
    """Random reparenting attempts never leave a cycle behind."""
    for name in ("d0", "d1", "d2", "d3", "d4"):
        guard.create_recipient(_recipient(name, RecipientType.INTERNAL_DEPARTMENT, external=None))

    attempts = [("d1", "d0"), ("d2", "d1"), ("d3", "d2"), ("d0", "d3"), ("d4", "d4"), ("d2", "d4"), ("d4", "d2")]
    for child, parent in attempts:
        try:
            guard.update_recipient(_recipient(child, RecipientType.INTERNAL_DEPARTMENT, parent=parent, external=None))
        except HierarchyValidationError:
            pass

    traversal = GraphTraversal(store)
    for recipient in store.list_recipients(ORG_ID):
        assert recipient.id not in {a.id for a in traversal.get_ancestor_chain(recipient.id, ORG_ID)}


def test_update_unknown_recipient(guard):
    with pytest.raises(RecipientNotFoundError):
        guard.update_recipient(_recipient("ghost", RecipientType.PROCESSOR))


def test_validation_and_write_share_one_transaction(guard, store, mocker):
    transaction = mocker.spy(store, "transaction")

    guard.create_recipient(_recipient("A", RecipientType.PROCESSOR))

    assert transaction.call_count == 1


def test_reparent_refuses_to_push_descendants_past_max_depth(guard, store):
    guard.create_recipient(_recipient("P", RecipientType.PROCESSOR))
    parent = "P"
    for name in ("s1", "s2", "s3", "s4", "s5"):
        guard.create_recipient(_recipient(name, RecipientType.SUB_PROCESSOR, parent=parent))
        parent = name
    guard.create_recipient(_recipient("Q", RecipientType.PROCESSOR))
    guard.create_recipient(_recipient("X", RecipientType.SUB_PROCESSOR, parent="Q"))

    with pytest.raises(HierarchyValidationError) as exc_info:
        guard.update_recipient(_recipient("s1", RecipientType.SUB_PROCESSOR, parent="X"))

    assert exc_info.value.result.errors == [
        "This change would put descendant s5 at depth 6, which exceeds maximum depth of 5 for type SUB_PROCESSOR"
    ]
    assert store.get_recipient("s1").parent_recipient_id == "P"
    assert GraphTraversal(store).calculate_hierarchy_depth("s5", ORG_ID) == 5


def test_reparent_within_depth_budget_is_accepted(guard, store):
    guard.create_recipient(_recipient("P", RecipientType.PROCESSOR))
    guard.create_recipient(_recipient("s1", RecipientType.SUB_PROCESSOR, parent="P"))
    guard.create_recipient(_recipient("s2", RecipientType.SUB_PROCESSOR, parent="s1"))
    guard.create_recipient(_recipient("Q", RecipientType.PROCESSOR))
    guard.create_recipient(_recipient("X", RecipientType.SUB_PROCESSOR, parent="Q"))

    saved, _ = guard.update_recipient(_recipient("s1", RecipientType.SUB_PROCESSOR, parent="X"))

    assert saved.parent_recipient_id == "X"
    assert GraphTraversal(store).calculate_hierarchy_depth("s2", ORG_ID) == 3


def test_type_change_must_keep_children_valid(guard, store):
    guard.create_recipient(_recipient("P", RecipientType.PROCESSOR))
    guard.create_recipient(_recipient("S", RecipientType.SUB_PROCESSOR, parent="P"))

    with pytest.raises(HierarchyValidationError, match="Child recipient S of type SUB_PROCESSOR"):
        guard.update_recipient(_recipient("P", RecipientType.SERVICE_PROVIDER))

    assert store.get_recipient("P").type == RecipientType.PROCESSOR


def test_validated_writes_keep_every_depth_within_bounds(guard, store):
    guard.create_recipient(_recipient("P", RecipientType.PROCESSOR))
    guard.create_recipient(_recipient("Q", RecipientType.PROCESSOR))
    for name, parent in (("a", "P"), ("b", "a"), ("c", "b"), ("x", "Q"), ("y", "x"), ("z", "y")):
        guard.create_recipient(_recipient(name, RecipientType.SUB_PROCESSOR, parent=parent))

    for child, parent in (("x", "c"), ("a", "z"), ("y", "c"), ("x", "b")):
        try:
            guard.update_recipient(_recipient(child, RecipientType.SUB_PROCESSOR, parent=parent))
        except HierarchyValidationError:
            pass

    traversal = GraphTraversal(store)
    for recipient in store.list_recipients(ORG_ID):
        depth = traversal.calculate_hierarchy_depth(recipient.id, ORG_ID)
        assert depth <= traversal.rules.max_depth(recipient.type)

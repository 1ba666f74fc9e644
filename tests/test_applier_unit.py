"""
Unit tests for appliers and the resource database
Tests per-kind dispatch, simulated outputs and reapply idempotence
"""
import pytest

from applier import Applier, ApplierRegistry, SimulatedApplier
from errors import ProvisionError
from models import PatchEntry, ReferenceSlot, ResourceNode
from resource_db import ResourceDatabase, render_outputs, resource_token


class RecordingApplier(Applier):
    """Applier that returns fixed outputs and remembers what it saw"""

    def __init__(self, outputs):
        self.outputs = outputs
        self.seen = []

    def apply(self, node):
        self.seen.append(("apply", node.id))
        return dict(self.outputs)

    def reapply(self, node, patches):
        self.seen.append(("reapply", node.id, [p.slot_name for p in patches]))
        return dict(self.outputs)


def make_node(node_id="web", kind="generic", **resolved):
    node = ResourceNode(id=node_id, kind=kind)
    node.resolved_inputs = dict(resolved)
    return node


@pytest.mark.unit
class TestApplierRegistry:
    """Test one handler per kind"""

    def test_dispatch_by_kind(self):
        registry = ApplierRegistry()
        buckets = RecordingApplier({"bucket_name": "b"})
        zones = RecordingApplier({"zone_id": "Z1"})
        registry.register("s3_bucket", buckets)
        registry.register("hosted_zone", zones)

        assert registry.apply(make_node("site", "s3_bucket")) == {"bucket_name": "b"}
        assert registry.apply(make_node("zone", "hosted_zone")) == {"zone_id": "Z1"}
        assert buckets.seen == [("apply", "site")]
        assert registry.kinds() == ["hosted_zone", "s3_bucket"]

    def test_reapply_dispatch(self):
        registry = ApplierRegistry()
        cdn = RecordingApplier({"domain_name": "d.example"})
        registry.register("cdn_distribution", cdn)

        registry.reapply(make_node("cdn", "cdn_distribution"), [PatchEntry("cdn", "lb_origin", "lb")])
        assert cdn.seen == [("reapply", "cdn", ["lb_origin"])]

    def test_unknown_kind_is_provision_error(self):
        with pytest.raises(ProvisionError, match="No applier registered for kind 'mystery'"):
            ApplierRegistry().apply(make_node("x", "mystery"))

    def test_fallback_handler(self):
        fallback = RecordingApplier({"id": "1"})
        registry = ApplierRegistry(fallback=fallback)

        assert registry.apply(make_node("x", "mystery")) == {"id": "1"}


@pytest.mark.unit
class TestSimulatedApplier:
    """Test the in-memory applier"""

    def test_outputs_follow_kind_contract(self):
        applier = SimulatedApplier()
        outputs = applier.apply(make_node("site", "s3_bucket", bucket_name="my-site"))

        assert outputs["bucket_name"] == "my-site"
        assert outputs["bucket_arn"] == "arn:aws:s3:::my-site"
        assert outputs["regional_domain_name"] == "my-site.s3.us-east-1.amazonaws.com"

    def test_region_from_node(self):
        node = make_node("site", "s3_bucket", bucket_name="my-site")
        node.region = "eu-west-1"

        outputs = SimulatedApplier().apply(node)
        assert outputs["regional_domain_name"].endswith(".s3.eu-west-1.amazonaws.com")

    def test_generic_outputs_for_unknown_kind(self):
        outputs = SimulatedApplier().apply(make_node("thing", "custom"))

        assert outputs == {
            "id": f"custom-{resource_token('thing', 'custom')}",
            "arn": "arn:stackforge:custom:us-east-1:thing",
        }

    def test_outputs_are_deterministic(self):
        first = SimulatedApplier().apply(make_node("lb", "compute", vpc_id="vpc-1"))
        second = SimulatedApplier().apply(make_node("lb", "compute", vpc_id="vpc-1"))

        assert first == second

    def test_injected_failures(self):
        applier = SimulatedApplier(fail_nodes=["a"], fail_kinds=["budget"])

        with pytest.raises(ProvisionError):
            applier.apply(make_node("a"))
        with pytest.raises(ProvisionError):
            applier.apply(make_node("b", "budget", limit_amount=5))
        assert "a" not in applier.database

    def test_unresolved_input_rejected(self):
        node = make_node("a", peer=ReferenceSlot("b", "id"))

        with pytest.raises(ProvisionError, match="unresolved"):
            SimulatedApplier().apply(node)

    def test_reapply_is_idempotent(self):
        """Reapplying the same patch twice leaves the same end state"""
        applier = SimulatedApplier()
        node = make_node("cdn", "cdn_distribution", origin_bucket="b", certificate_arn="c", lb_origin=None)
        applier.apply(node)
        patch = PatchEntry("cdn", "lb_origin", "lb.example.com")

        first = applier.reapply(node, [patch])
        record_after_first = applier.database.get_record("cdn")
        second = applier.reapply(node, [patch])

        assert first == second
        assert applier.database.get_record("cdn") == record_after_first
        assert record_after_first["version"] == 2
        assert record_after_first["inputs"]["lb_origin"] == "lb.example.com"

    def test_reapply_without_resource(self):
        with pytest.raises(ProvisionError, match="never created"):
            SimulatedApplier().reapply(make_node("ghost"), [])

    def test_reapply_failure_injection(self):
        applier = SimulatedApplier(fail_reapply_nodes=["cdn"])
        applier.apply(make_node("cdn"))

        with pytest.raises(ProvisionError, match="patch failure"):
            applier.reapply(make_node("cdn"), [PatchEntry("cdn", "x", 1)])


@pytest.mark.unit
class TestResourceDatabase:
    """Test record versioning"""

    def test_version_increments_on_change(self):
        db = ResourceDatabase()
        db.put_record("a", "generic", "us-east-1", {"x": 1}, {"id": "1"})
        db.put_record("a", "generic", "us-east-1", {"x": 2}, {"id": "1"})

        assert db.get_record("a")["version"] == 2

    def test_same_write_keeps_version(self):
        db = ResourceDatabase()
        db.put_record("a", "generic", "us-east-1", {"x": 1}, {"id": "1"})
        db.put_record("a", "generic", "us-east-1", {"x": 1}, {"id": "1"})

        assert db.get_record("a")["version"] == 1

    def test_records_are_copies(self):
        db = ResourceDatabase()
        db.put_record("a", "generic", "us-east-1", {"x": [1]}, {"id": "1"})

        db.get_record("a")["inputs"]["x"].append(2)
        assert db.get_record("a")["inputs"]["x"] == [1]

    def test_list_records_sorted(self):
        db = ResourceDatabase()
        db.put_record("b", "generic", "us-east-1", {}, {})
        db.put_record("a", "generic", "us-east-1", {}, {})

        assert [r["node_id"] for r in db.list_records()] == ["a", "b"]
        assert db.get_record("missing") is None

    def test_missing_input_renders_unset(self):
        outputs = render_outputs("site", "s3_bucket", "us-east-1", {})
        assert outputs["bucket_name"] == "unset"

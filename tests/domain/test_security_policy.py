"""Tests for the SecurityPolicy entity and ApplyResult."""

import pytest

from palisade.domain.entities.security_policy import (
    ApplyResult,
    PolicyOutcome,
    SecurityPolicy,
)
from palisade.domain.exceptions import ValidationError


def _policy(**overrides) -> SecurityPolicy:
    fields = dict(
        ip="10.0.0.1",
        type="cvm",
        id="ins-1",
        region="ap-guangzhou",
        support_security_group_api=True,
        peer_ip="10.0.0.2",
        protocol="TCP",
        ports="80",
        action="accept",
    )
    fields.update(overrides)
    return SecurityPolicy(**fields)


class TestSecurityPolicy:
    def test_new_policy_is_pending(self):
        assert _policy().outcome == PolicyOutcome.PENDING

    def test_bound_to(self):
        policy = _policy().bound_to("sg-1")
        assert policy.outcome == PolicyOutcome.SUCCESS
        assert policy.security_group_id == "sg-1"

    def test_failed(self):
        assert _policy().failed("boom").outcome == PolicyOutcome.FAILED

    def test_undone(self):
        assert _policy().undone("no api").outcome == PolicyOutcome.UNDO

    def test_transitions_do_not_mutate(self):
        policy = _policy()
        policy.failed("boom")
        assert policy.err_msg is None

    def test_frozen(self):
        with pytest.raises(AttributeError):
            _policy().ip = "10.0.0.9"

    def test_reset_clears_outcome(self):
        policy = _policy(err_msg="old", undo_reason="old", security_group_id="sg-old")
        reset = policy.reset()
        assert reset.outcome == PolicyOutcome.PENDING
        assert reset.ip == policy.ip

    def test_to_dict_omits_empty_optional_fields(self):
        data = _policy().to_dict()
        assert "err_msg" not in data
        assert "undo_reason" not in data
        assert "security_group_id" not in data
        assert data["support_security_group_api"] is True

    def test_to_dict_includes_set_fields(self):
        data = _policy().bound_to("sg-1").to_dict()
        assert data["security_group_id"] == "sg-1"

    def test_from_dict_roundtrip(self):
        policy = _policy(description="web").failed("boom")
        assert SecurityPolicy.from_dict(policy.to_dict()) == policy

    def test_from_dict_defaults(self):
        policy = SecurityPolicy.from_dict({"ip": "10.0.0.1", "id": "ins-1"})
        assert policy.support_security_group_api is False
        assert policy.err_msg is None

    def test_from_dict_null_fields_are_empty(self):
        policy = SecurityPolicy.from_dict(
            {"ip": None, "id": "ins-1", "description": None, "err_msg": None}
        )
        assert policy.ip == ""
        assert policy.description == ""
        assert policy.err_msg is None

    @pytest.mark.parametrize("flag", ["false", "true", 0, 1, None])
    def test_from_dict_rejects_non_bool_flag(self, flag):
        with pytest.raises(ValidationError):
            SecurityPolicy.from_dict(
                {"ip": "10.0.0.1", "id": "ins-1", "support_security_group_api": flag}
            )


class TestApplyResult:
    def test_from_policies_partitions_by_outcome(self):
        policies = [
            _policy().bound_to("sg-1"),
            _policy().undone("no api"),
            _policy().failed("boom"),
            _policy().failed("boom"),
        ]
        result = ApplyResult.from_policies(4, policies)
        assert result.success_total == 1
        assert result.undo_total == 1
        assert result.failed_total == 2

    def test_to_dict(self):
        result = ApplyResult.from_policies(1, [_policy().bound_to("sg-1")])
        data = result.to_dict()
        assert data["policies_total"] == 1
        assert data["success_policies_total"] == 1
        assert data["undo_policies_total"] == 0
        assert data["failed_policies_total"] == 0
        assert data["success_policies"][0]["security_group_id"] == "sg-1"

    def test_empty(self):
        assert ApplyResult().to_dict()["policies_total"] == 0

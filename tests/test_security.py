"""
Tests for the command security policy.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from kubechat.modules.command import parse_command
from kubechat.modules.security import DenialReason, SecurityValidator, SecurityVerdict


def check(text, validator=None):
    validator = validator or SecurityValidator()
    return validator.validate(parse_command(text), text)


class TestSecurityValidator:
    """Test SecurityValidator.validate."""

    @pytest.mark.parametrize(
        "text",
        [
            "kubectl get pods",
            "kubectl get pods -A",
            "kubectl describe pod web-1 -n prod",
            "kubectl logs web-1",
            "kubectl scale deployment/frontend --replicas=3",
            "kubectl list pods",
        ],
    )
    def test_allowed(self, text):
        verdict = check(text)

        assert verdict.allowed
        assert verdict.reason is None
        assert verdict.describe() == "allowed"

    @pytest.mark.parametrize("verb", ["delete", "edit", "patch", "apply", "create", "replace"])
    def test_blocked_verbs(self, verb):
        verdict = check(f"kubectl {verb} pod foo")

        assert not verdict.allowed
        assert verdict.reason == DenialReason.BLOCKED_VERB
        assert verdict.offending == verb

    def test_blocked_verb_case_insensitive(self):
        assert check("kubectl DELETE pod foo").reason == DenialReason.BLOCKED_VERB

    @pytest.mark.parametrize("verb", ["exec", "port-forward", "cp", "drain"])
    def test_verbs_outside_allow_list(self, verb):
        verdict = check(f"kubectl {verb} pod foo")

        assert verdict.reason == DenialReason.VERB_NOT_ALLOWED
        assert verdict.offending == verb

    @pytest.mark.parametrize(
        "text,char",
        [
            ("kubectl get pods; rm -rf /", ";"),
            ("kubectl get pods | grep web", "|"),
            ("kubectl get pods && echo hi", "&"),
            ("kubectl get pods > /tmp/out", ">"),
            ("kubectl get pods < /etc/passwd", "<"),
            ("kubectl get pods $HOME", "$"),
        ],
    )
    def test_injection(self, text, char):
        verdict = check(text)

        assert verdict.reason == DenialReason.INJECTION
        assert verdict.offending == char

    def test_injection_checked_before_blocked_verb(self):
        assert check("kubectl delete pods; ls").reason == DenialReason.INJECTION

    @pytest.mark.parametrize("name", ["web_1", "web.1", "Web:1", "café"])
    def test_resource_name_not_whitelisted(self, name):
        verdict = check(f"kubectl describe pod {name}")

        assert verdict.reason == DenialReason.RESOURCE_NAME_NOT_WHITELISTED
        assert verdict.offending == name
        assert verdict.describe() == f"resource-name-not-whitelisted: {name}"


class TestPolicyNarrowing:
    """Test per-cluster allow-list narrowing."""

    def test_allowed_commands_narrow(self):
        validator = SecurityValidator(allowed_verbs=["get", "describe"])

        assert check("kubectl get pods", validator).allowed
        assert check("kubectl logs web-1", validator).reason == DenialReason.VERB_NOT_ALLOWED

    def test_allowed_commands_never_widen(self):
        validator = SecurityValidator(allowed_verbs=["get", "delete", "exec"])

        assert validator.allowed_verbs == frozenset({"get"})
        assert check("kubectl delete pod foo", validator).reason == DenialReason.BLOCKED_VERB
        assert check("kubectl exec pod foo", validator).reason == DenialReason.VERB_NOT_ALLOWED

    def test_read_only_drops_scale(self):
        validator = SecurityValidator(read_only=True)

        verdict = check("kubectl scale deployment/web --replicas=2", validator)
        assert verdict.reason == DenialReason.VERB_NOT_ALLOWED
        assert check("kubectl get pods", validator).allowed

    def test_policy_summary(self):
        summary = SecurityValidator(read_only=True).get_policy_summary()

        assert summary["allowed_verbs"] == ["describe", "get", "list", "logs"]
        assert "delete" in summary["blocked_verbs"]
        assert summary["resource_name_pattern"] == "^[A-Za-z0-9-]+$"


def test_verdict_constructors():
    denied = SecurityVerdict.deny(DenialReason.INJECTION, ";")

    assert not denied.allowed
    assert denied.describe() == "injection: ;"
    assert SecurityVerdict.allow().allowed

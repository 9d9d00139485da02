"""
Which build remediation actions may run unattended, and the
registry alias each fixed-command action resolves to.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class RemediationRule:
    """Execution policy for a remediation action."""
    alias: str | None = None
    destructive: bool = False
    requires_interactive: bool = False
    requires_confirmation: bool = False
    requires_config: bool = False


# Actions without an alias expand to package scripts found at run time.
REMEDIATION_POLICY: dict[str, RemediationRule] = {
    "prisma_generate": RemediationRule(alias="prisma-generate"),
    "clean_artifacts": RemediationRule(alias="ycln"),
    "cache_clean": RemediationRule(alias="ycc"),
    "migrate_scripts": RemediationRule(),
    "keyword_scripts": RemediationRule(),
    "reinstall": RemediationRule(alias="yi"),
    # user-configured docker development command
    "docker_remediation": RemediationRule(requires_config=True),
    # deletes every node_modules tree
    "deep_clean": RemediationRule(alias="ffyc", destructive=True,
                  requires_interactive=True, requires_confirmation=True),
}


def can_run_remediation(action: str, interactive: bool,
                        configured: bool = True) -> tuple[bool, str]:
    """`(allowed, reason)` for running `action` in this context."""
    rule = REMEDIATION_POLICY.get(action)
    if rule is None: return False, "unknown remediation action"
    if rule.requires_config and not configured:
        return False, "action requires configuration"
    if rule.requires_interactive and not interactive:
        return False, "action requires interactive mode"
    return True, ""


def requires_confirmation(action: str) -> bool:
    rule = REMEDIATION_POLICY.get(action)
    return bool(rule and rule.requires_confirmation)


def alias_for(action: str) -> str | None:
    rule = REMEDIATION_POLICY.get(action)
    return rule.alias if rule else None

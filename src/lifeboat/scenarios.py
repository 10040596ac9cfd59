"""Built-in scenario definitions."""

from __future__ import annotations

from lifeboat.types import (
    DisasterScenario,
    RecoveryProcedure,
    RecoveryStep,
    Severity,
    ValidationCheck,
    ValidationKind,
)

CROSS_REGION_FAILOVER_ID = "cross_region_failover"


def cross_region_failover_procedure(
    target_region: str,
    primary_region: str = "us-central1",
) -> RecoveryProcedure:
    """Failover of the whole stack to ``target_region``.

    Stakeholder notification has no dependencies and runs in the first level
    alongside target validation.
    """
    steps = (
        RecoveryStep(
            name="validate_target_region",
            command=f"gcloud compute regions describe {target_region}",
            timeout="PT2M",
        ),
        RecoveryStep(
            name="activate_target_infrastructure",
            command=f'terraform apply -var="active_region={target_region}" -auto-approve',
            timeout="PT30M",
            dependencies=("validate_target_region",),
        ),
        RecoveryStep(
            name="restore_latest_backup",
            command=f"lifeboat-restore --cross-region --region={target_region}",
            timeout="PT2H",
            dependencies=("activate_target_infrastructure",),
        ),
        RecoveryStep(
            name="update_dns_routing",
            command=f"gcloud dns record-sets update --routing-region={target_region}",
            timeout="PT5M",
            dependencies=("restore_latest_backup",),
        ),
        RecoveryStep(
            name="validate_application_health",
            command="lifeboat-healthcheck --full",
            timeout="PT10M",
            dependencies=("update_dns_routing",),
        ),
        RecoveryStep(
            name="notify_stakeholders",
            command=f"lifeboat-notify failover-complete --region={target_region}",
            timeout="PT2M",
            parallel_hint=True,
        ),
    )
    rollback = (
        RecoveryStep(
            name="restore_primary_region",
            command=f'terraform apply -var="active_region={primary_region}" -auto-approve',
            timeout="PT30M",
        ),
    )
    validations = (
        ValidationCheck(
            name="application_accessibility",
            kind=ValidationKind.FUNCTIONAL,
            command="lifeboat-healthcheck --http",
            threshold={"statusCode": 200},
        ),
        ValidationCheck(
            name="data_consistency",
            kind=ValidationKind.DATA_INTEGRITY,
            command="lifeboat-validate --data-consistency",
            threshold={"errorRate": {"max": 0.01}},
        ),
    )
    return RecoveryProcedure(
        description=f"Cross-region failover to {target_region}",
        steps=steps,
        rollback_steps=rollback,
        validations=validations,
    )


def cross_region_failover_scenario(
    target_region: str,
    primary_region: str = "us-central1",
) -> DisasterScenario:
    return DisasterScenario(
        id=CROSS_REGION_FAILOVER_ID,
        name="Cross-Region Failover",
        description=f"Automated failover to {target_region}",
        severity=Severity.CRITICAL,
        procedure=cross_region_failover_procedure(target_region, primary_region),
        estimated_rto="PT4H",
        estimated_rpo="PT1H",
    )

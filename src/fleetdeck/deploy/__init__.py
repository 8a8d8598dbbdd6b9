"""Deploy pipeline: probe, prune, build, reconcile and release."""

from fleetdeck.deploy.orchestrator import DeployOrchestrator, validate_deploy_request

__all__ = ["DeployOrchestrator", "validate_deploy_request"]

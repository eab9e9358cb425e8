"""Adapters for the Kubernetes-facing collaborators (pods, logs, secrets)."""

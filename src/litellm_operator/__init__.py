"""LiteLLM Operator: reconciles LiteLLM proxy keys and teams from Kubernetes resources."""

__version__ = "0.1.0"

from dataclasses import dataclass


@dataclass
class OperatorContext:
    """Identity context for operator requests (dashboard, retries, GA4 setup)."""
    operator_id: str
    token_type: str = "operator"

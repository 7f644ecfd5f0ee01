from trackflow.rules.loader import load_rules
from trackflow.rules.models import Rules

__all__ = ["Rules", "load_rules"]

from blobfs.rules.loader import load_rules, rules_from_env
from blobfs.rules.models import CacheRules, StoreRules

__all__ = ["CacheRules", "StoreRules", "load_rules", "rules_from_env"]

"""License whitelist — policy schema, loading and reconciliation."""

from licaudit.whitelist.loader import SAMPLE_LICENSES, load_policy, write_sample_whitelist
from licaudit.whitelist.models import Classification, PolicyRule
from licaudit.whitelist.reconciler import classify, partition, reconcile, split_alternatives

__all__ = [
    "SAMPLE_LICENSES",
    "Classification",
    "PolicyRule",
    "classify",
    "load_policy",
    "partition",
    "reconcile",
    "split_alternatives",
    "write_sample_whitelist",
]

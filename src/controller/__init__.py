"""Reconciliation core for CephObjectStore resources.

The core is framework independent: it talks to the outside world only through
the RecordStore, ClusterQuery and Provisioner protocols in
`controller.interfaces`, so the same loop runs against Kubernetes in production
and against in-memory fakes in tests.
"""

from controller.reconciler import Reconciler

__all__ = ["Reconciler"]

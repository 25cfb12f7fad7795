"""Presentation-facing application layer.

- ``BackupOrchestrator`` owns the observable backup state and sequences work
- ``BackupState`` exposes that state as Qt properties for bindings
- ``StateSubscription`` / ``LifecycleBinding`` scope a view's subscription to
  its active period
"""

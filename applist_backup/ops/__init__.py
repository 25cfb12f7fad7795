"""Use-case / operations layer.

Long-running collaborators wired around the orchestrator: completion
notifications and the periodic backup trigger.
"""

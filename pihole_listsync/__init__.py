"""
pihole-listsync - keep Pi-hole's adlists and domain lists in sync with remote sources.

Modules:
    normalizer: Split fetched text into unique values and annotations
    validator: Per-kind syntax checks
    snapshot: In-memory registry index
    reconciler: Ownership-safe merge of one list into the registry
    updater: Runs the reconciler over every configured section
    cli: Command line entry point
"""

__version__ = "2.0.0"

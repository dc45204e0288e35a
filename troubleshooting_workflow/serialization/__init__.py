"""
Serialization Layer - Versioned Workflow Snapshots
"""

from troubleshooting_workflow.serialization.snapshot import (
    ImportedSnapshot,
    decode_share_token,
    dump_snapshot,
    encode_share_token,
    export_snapshot,
    import_snapshot,
)

__all__ = [
    "ImportedSnapshot",
    "decode_share_token",
    "dump_snapshot",
    "encode_share_token",
    "export_snapshot",
    "import_snapshot",
]

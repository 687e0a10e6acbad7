"""
Services package.

Import from the submodules directly:
- ledger.services.storage: repositories, in-memory store, snapshot proxy
- ledger.services.snapshot: file snapshot writer
- ledger.services.editing: create/edit/delete helpers with change summaries
"""

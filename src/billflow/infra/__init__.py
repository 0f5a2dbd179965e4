"""Storage bindings for the transaction repository."""

"""
Core application engine for reconciling an installation against its manifest.

This package contains the primary logic. The `PatchManager` acts as the
high-level session coordinator, delegating verification to the
`InventoryVerifier` and each individual transfer to the `ResumableFetcher`
through the `FetchDispatcher`.
"""

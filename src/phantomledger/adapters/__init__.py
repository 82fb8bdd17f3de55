"""Adapters connecting the accounting core to configuration, payloads and storage."""

"""Background jobs draining the bulk queues in the key-value store."""

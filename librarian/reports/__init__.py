"""Status report rendering (PDF) and delivery (email)."""

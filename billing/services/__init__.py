"""Business logic. Views call into these modules; they raise billing.exceptions on failure."""

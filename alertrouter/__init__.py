"""Alert routing and notification channel management."""

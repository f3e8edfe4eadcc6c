"""Environment-wide authorized SSH key management."""

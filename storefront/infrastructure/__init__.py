"""Infrastructure adapters: local storage, HTTP API clients, retry."""

"""Chart lifecycle orchestration (apply, delete, validate verbs)."""

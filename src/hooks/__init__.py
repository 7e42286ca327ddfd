"""Chart lifecycle hooks: parsing and execution."""

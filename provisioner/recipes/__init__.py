"""Built-in provisioning recipes (YAML), loaded via ``importlib.resources``."""

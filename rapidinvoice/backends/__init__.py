"""Invoice workflow: validation, pricing, identifiers, storage and formatting."""

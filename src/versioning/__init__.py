"""Package ids, dependency constraints and version comparison."""

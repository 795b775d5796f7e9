"""Organization structure: divisions and their managers."""

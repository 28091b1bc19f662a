"""Store access, stock workflows and reports."""

"""Two-phase backup-then-transform batch engine."""

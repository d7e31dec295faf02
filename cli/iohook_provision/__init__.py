"""Fetch or build the iohook native add-on for each configured target."""
